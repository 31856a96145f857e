"""
Tests for XMRSCAN balance aggregation.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from xmrscan.balance import (
    BalanceAggregator,
    ScanState,
    ScanStatus,
    apply_transaction,
    scan_received,
)
from xmrscan.errors import InvalidPoint, MissingTxPublicKey, TransactionNotFound, UnsupportedInputType
from xmrscan.store import MemoryTransactionStore
from xmrscan.transaction import ToKeyOutput, ToKeyInput, GenInput, OtherInput


def spend_of(tx, keys, index=0, amount=None):
    """Input spending output `index` of tx, as the owner would publish it."""
    owned = {o.index: o for o in scan_received(tx, keys)}
    out = owned[index]
    return ToKeyInput(key_image=out.key_image, amount=out.amount if amount is None else amount)


class TestBalanceConservation:
    """Receive then spend the same output."""

    def test_receive_then_spend(self, alice, bob, pay):
        t1 = pay([(alice, 1_000_000)])
        t2 = pay([(bob, 990_000)], inputs=[spend_of(t1, alice)])

        aggregator = BalanceAggregator(alice)
        s1 = aggregator.feed(t1)
        assert s1.received == 1_000_000
        assert aggregator.state.running_balance == 1_000_000

        s2 = aggregator.feed(t2)
        assert s2.received == 0
        assert s2.spent == 1_000_000
        assert s2.net == -1_000_000
        assert s2.per_input == [True]

        result = aggregator.finish()
        assert result.running_balance == 0
        assert result.total_received == 1_000_000
        assert result.total_spent == 1_000_000
        assert aggregator.status == ScanStatus.DONE

    def test_run(self, alice, bob, pay):
        t1 = pay([(alice, 700), (bob, 5), (alice, 300)])
        t2 = pay([(alice, 50)], inputs=[spend_of(t1, alice, 0)])

        result = BalanceAggregator(alice).run([t1, t2])

        assert [s.received for s in result.summaries] == [1000, 50]
        assert [s.spent for s in result.summaries] == [0, 700]
        assert [s.running_balance for s in result.summaries] == [1000, 350]
        assert result.running_balance == 350
        assert len(result.known_images) == 3

    def test_coinbase_reward(self, alice, pay):
        t1 = pay([(alice, 600_000_000_000)], inputs=[GenInput(3000)])

        result = BalanceAggregator(alice).run([t1])

        assert result.running_balance == 600_000_000_000
        assert result.summaries[0].per_input == [False]


class TestNonOwnership:
    """Outputs of other accounts never produce images or spends."""

    def test_no_false_spend(self, alice, bob, pay):
        t1 = pay([(bob, 1000)])
        t2 = pay([(bob, 900)], inputs=[spend_of(t1, bob)])

        result = BalanceAggregator(alice).run([t1, t2])

        assert result.known_images == frozenset()
        assert result.running_balance == 0
        assert result.summaries[1].per_input == [False]

    def test_bob_sees_his_own(self, alice, bob, pay):
        t1 = pay([(bob, 1000)])
        t2 = pay([(alice, 900)], inputs=[spend_of(t1, bob)])

        assert BalanceAggregator(bob).run([t1, t2]).running_balance == 0
        assert BalanceAggregator(alice).run([t1, t2]).running_balance == 900


class TestSpendDependency:
    """A spend is only seen after the spent output was scanned."""

    def test_spend_before_receive_not_detected(self, alice, pay):
        t1 = pay([(alice, 1000)])
        t2 = pay([], inputs=[spend_of(t1, alice)])

        result = BalanceAggregator(alice).run([t2, t1])

        assert result.summaries[0].spent == 0
        assert result.summaries[0].per_input == [False]
        assert result.running_balance == 1000

    def test_batch_sees_whole_batch(self, alice, pay):
        """In a batch every image is known before any spend check."""
        t1 = pay([(alice, 1000)])
        t2 = pay([], inputs=[spend_of(t1, alice)])

        result = BalanceAggregator(alice).run_batch([t2, t1], workers=2)

        assert result.summaries[0].spent == 1000
        assert result.running_balance == 0


class TestPhaseOneOrder:
    """Phase 1 results do not depend on transaction order."""

    def test_order_independence(self, alice, bob, pay):
        a = pay([(alice, 10), (bob, 20)])
        b = pay([(bob, 30), (alice, 40)])

        forward = BalanceAggregator(alice).run_batch([a, b], workers=2)
        backward = BalanceAggregator(alice).run_batch([b, a], workers=2)

        assert forward.known_images == backward.known_images
        owned_forward = {s.txid: [o.index for o in s.owned_outputs] for s in forward.summaries}
        owned_backward = {s.txid: [o.index for o in s.owned_outputs] for s in backward.summaries}
        assert owned_forward == owned_backward
        assert forward.running_balance == backward.running_balance == 50

    def test_batch_matches_sequential(self, alice, bob, pay):
        t1 = pay([(alice, 500), (alice, 250)])
        t2 = pay([(bob, 100)], inputs=[spend_of(t1, alice, 1)])
        t3 = pay([(alice, 75)], inputs=[spend_of(t1, alice, 0)])

        sequential = BalanceAggregator(alice).run([t1, t2, t3])
        batch = BalanceAggregator(alice).run_batch([t1, t2, t3], workers=3)

        assert sequential.to_dict() == batch.to_dict()


class TestFailures:
    """Errors are terminal and leave the balance untouched."""

    def test_missing_public_key(self, alice, pay):
        t1 = pay([(alice, 1000)])
        t2 = pay([(alice, 5)], with_public_key=False)

        aggregator = BalanceAggregator(alice)
        with pytest.raises(MissingTxPublicKey):
            aggregator.run([t1, t2])

        assert aggregator.status == ScanStatus.FAILED
        assert aggregator.state.running_balance == 1000
        assert len(aggregator.summaries) == 1
        with pytest.raises(RuntimeError):
            aggregator.result

    def test_failed_session_cannot_continue(self, alice, pay):
        aggregator = BalanceAggregator(alice)
        with pytest.raises(MissingTxPublicKey):
            aggregator.feed(pay([(alice, 1)], with_public_key=False))

        with pytest.raises(RuntimeError):
            aggregator.feed(pay([(alice, 1)]))
        with pytest.raises(RuntimeError):
            aggregator.finish()

    def test_batch_failure(self, alice, pay):
        t1 = pay([(alice, 1000)])
        t2 = pay([(alice, 5)], with_public_key=False)

        aggregator = BalanceAggregator(alice)
        with pytest.raises(MissingTxPublicKey):
            aggregator.run_batch([t1, t2], workers=2)

        assert aggregator.status == ScanStatus.FAILED
        assert aggregator.state.running_balance == 0
        assert aggregator.summaries == []

    def test_unsupported_input_in_batch(self, alice, pay):
        t1 = pay([(alice, 1000)], inputs=[OtherInput('to_scripthash')])

        with pytest.raises(UnsupportedInputType):
            BalanceAggregator(alice).run_batch([t1], workers=1)

    def test_off_curve_output_key(self, alice, pay, off_curve):
        tx = pay([(alice, 1000)])
        tx.outputs.append(ToKeyOutput(1, 7, off_curve))

        aggregator = BalanceAggregator(alice)
        with pytest.raises(InvalidPoint):
            aggregator.run([tx])

        assert aggregator.status == ScanStatus.FAILED
        assert aggregator.state.running_balance == 0

    def test_off_curve_key_image(self, alice, pay, off_curve):
        t1 = pay([(alice, 1000)])
        t2 = pay([], inputs=[spend_of(t1, alice), ToKeyInput(off_curve, 3)])

        aggregator = BalanceAggregator(alice)
        with pytest.raises(InvalidPoint):
            aggregator.run([t1, t2])

        assert aggregator.status == ScanStatus.FAILED
        assert aggregator.state.running_balance == 1000

    def test_off_curve_in_batch(self, alice, pay, off_curve):
        tx = pay([(alice, 1000)], inputs=[ToKeyInput(off_curve, 3)])

        with pytest.raises(InvalidPoint):
            BalanceAggregator(alice).run_batch([tx], workers=1)

    def test_done_session_cannot_restart(self, alice, pay):
        aggregator = BalanceAggregator(alice)
        aggregator.run([pay([(alice, 1)])])

        with pytest.raises(RuntimeError):
            aggregator.run([pay([(alice, 1)])])

    def test_result_before_finish(self, alice, pay):
        aggregator = BalanceAggregator(alice)
        aggregator.feed(pay([(alice, 1)]))

        with pytest.raises(RuntimeError):
            aggregator.result


class TestScanState:
    """Explicit state passing."""

    def test_apply_transaction_returns_new_state(self, alice, pay):
        state = ScanState()
        tx = pay([(alice, 42)])

        new_state, summary = apply_transaction(state, tx, alice)

        assert state.running_balance == 0
        assert state.known_images == frozenset()
        assert new_state.running_balance == 42
        assert new_state.image_origins[summary.key_images[0]] == (tx.txid, 0)

    def test_image_origins_read_only(self, alice, pay):
        tx = pay([(alice, 42)])
        state, summary = apply_transaction(ScanState(), tx, alice)
        image = summary.key_images[0]

        with pytest.raises(TypeError):
            state.image_origins[image] = ('00' * 32, 9)
        with pytest.raises(TypeError):
            state.with_net(5).image_origins.clear()

        assert state.image_origins[image] == (tx.txid, 0)

    def test_states_do_not_share_origins(self):
        origins = {b'\x01' * 32: ('aa' * 32, 0)}
        state = ScanState(image_origins=origins)
        later = state.with_net(10).with_images({b'\x02' * 32: ('bb' * 32, 1)})

        origins[b'\x03' * 32] = ('cc' * 32, 2)

        assert len(state.image_origins) == 1
        assert len(later.image_origins) == 2
        assert later.running_balance == 10

    def test_resume_from_state(self, alice, pay):
        t1 = pay([(alice, 1000)])
        t2 = pay([], inputs=[spend_of(t1, alice)])

        first = BalanceAggregator(alice)
        first.run([t1])

        second = BalanceAggregator(alice, state=first.state)
        result = second.run([t2])

        assert result.summaries[0].spent == 1000
        assert result.running_balance == 0


class TestScanHashes:
    """Fetching from a store before scanning."""

    def test_scan_hashes(self, alice, pay):
        t1 = pay([(alice, 1000)])
        t2 = pay([], inputs=[spend_of(t1, alice, amount=1000)])
        store = MemoryTransactionStore([t1, t2])

        result = BalanceAggregator(alice).scan_hashes(store, [t1.txid, t2.txid, t1.txid])

        assert [s.txid for s in result.summaries] == [t1.txid, t2.txid]
        assert result.running_balance == 0

    def test_scan_hashes_batch(self, alice, pay):
        t1 = pay([(alice, 1000)])
        store = MemoryTransactionStore([t1])

        result = BalanceAggregator(alice).scan_hashes(store, [t1.txid], batch=True, workers=1)

        assert result.running_balance == 1000

    def test_not_found(self, alice, pay):
        store = MemoryTransactionStore([pay([(alice, 1)])])
        aggregator = BalanceAggregator(alice)

        with pytest.raises(TransactionNotFound):
            aggregator.scan_hashes(store, ['00' * 32])

        assert aggregator.status == ScanStatus.FAILED
