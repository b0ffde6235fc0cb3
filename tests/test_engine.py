import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from toy_payments.errors import MalformedRecord
from toy_payments.models import RejectionReason
from toy_payments.payments_engine import PaymentsEngine


def write_csv(tmp_path, lines):
    csv_file = tmp_path / "test.csv"
    csv_file.write_text("\n".join(lines))
    return str(csv_file)


class TestPaymentsEngine:
    def test_basic_transactions(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        ])

        engine = PaymentsEngine()
        accounts = engine.process_file(path)

        assert set(accounts) == {1, 2}

        assert accounts[1].available == Decimal("1.5")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("1.5")

        assert accounts[2].available == Decimal("2.0")
        assert accounts[2].held == Decimal("0")
        assert accounts[2].total == Decimal("2.0")

        assert engine.stats.processed == 4
        assert engine.stats.rejected == 1
        assert engine.stats.rejections_by_reason() == {RejectionReason.INSUFFICIENT_FUNDS: 1}

    def test_dispute_resolve(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].locked is False

    def test_chargeback(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("0")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True

    def test_dispute_before_deposit_is_not_retried(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "dispute, 1, 1,",
            "deposit, 1, 1, 100.0",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")

    def test_decimal_precision(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 1.2345",
            "deposit, 1, 2, 0.0001",
            "withdrawal, 1, 3, 0.2346",
            "deposit, 1, 4, 0.00009",
        ])

        accounts = PaymentsEngine().process_file(path)

        # 1.2345 + 0.0001 - 0.2346 + 0.0000 (truncated) = 1.0000
        assert accounts[1].available == Decimal("1.0000")

    def test_dispute_withdrawal_holds_its_amount(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "withdrawal, 1, 2, 50.0",
            "dispute, 1, 2,",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("0")
        assert accounts[1].held == Decimal("50")
        assert accounts[1].total == Decimal("50")

    def test_dispute_after_partial_withdrawal_rejected(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "withdrawal, 1, 2, 30.0",
            "dispute, 1, 1,",
        ])

        accounts = PaymentsEngine().process_file(path)

        # Holding 100 would leave available at -30
        assert accounts[1].available == Decimal("70")
        assert accounts[1].held == Decimal("0")

    def test_duplicate_dispute_ignored(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "dispute, 1, 1,",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("0")
        assert accounts[1].held == Decimal("100")

    def test_frozen_account_rejects_operations(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
            "deposit, 1, 2, 50.0",
            "withdrawal, 1, 3, 10.0",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("0")
        assert accounts[1].total == Decimal("0")
        assert accounts[1].locked is True

    def test_wrong_client_dispute_ignored(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 2, 1,",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        # Client 2 was referenced, so it still gets an (empty) account
        assert accounts[2].total == Decimal("0")

    def test_chargeback_after_resolve_ignored(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
            "chargeback, 1, 1,",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].locked is False

    def test_no_redispute_after_resolve(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].locked is False

    def test_multiple_disputes_same_client(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "deposit, 1, 2, 50.0",
            "dispute, 1, 1,",
            "dispute, 1, 2,",
            "resolve, 1, 1,",
            "chargeback, 1, 2,",
        ])

        accounts = PaymentsEngine().process_file(path)

        assert accounts[1].available == Decimal("100")
        assert accounts[1].held == Decimal("0")
        assert accounts[1].total == Decimal("100")
        assert accounts[1].locked is True

    def test_negative_deposit_rejected(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, -100.0",
            "deposit, 1, 2, 50.0",
        ])

        engine = PaymentsEngine()
        accounts = engine.process_file(path)

        assert accounts[1].available == Decimal("50")
        assert engine.stats.rejections_by_reason() == {RejectionReason.INVALID_AMOUNT: 1}

    def test_duplicate_deposit_rejected(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "deposit, 1, 1, 100.0",
            "withdrawal, 1, 1, 100.0",
        ])

        engine = PaymentsEngine()
        accounts = engine.process_file(path)

        assert accounts[1].available == Decimal("100")
        assert engine.stats.rejections_by_reason() == {RejectionReason.DUPLICATE_TRANSACTION_ID: 2}

    def test_malformed_rows_skipped_in_stream_mode(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, two, 2.0",
            "teleport, 2, 3, 2.0",
            "deposit, 3, 4, 3.0",
        ])

        engine = PaymentsEngine()
        accounts = engine.process_file(path)

        assert set(accounts) == {1, 3}
        assert accounts[3].available == Decimal("3.0")
        assert engine.stats.malformed == 2

    def test_batch_mode_rejects_whole_file(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, two, 2.0",
        ])

        engine = PaymentsEngine()
        with pytest.raises(MalformedRecord):
            engine.process_batch(path)

        assert engine.processor.ledger.accounts() == {}

    def test_batch_mode(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 10",
            "dispute, 1, 1,",
        ])

        accounts = PaymentsEngine().process_batch(path)

        assert accounts[1].held == Decimal("10")

    def test_missing_input_file(self, tmp_path):
        with pytest.raises(OSError):
            PaymentsEngine().process_file(str(tmp_path / "nope.csv"))

    def test_on_result_callback_sees_every_record(self, tmp_path):
        path = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 10",
            "dispute, 1, 5,",
            "withdrawal, 1, 2, 3",
        ])
        results = []

        PaymentsEngine().process_file(path, on_result=results.append)

        assert [r.transaction.transaction_id for r in results] == [1, 5, 2]
        assert [r.reason for r in results] == [None, RejectionReason.UNKNOWN_TRANSACTION_REFERENCE, None]
