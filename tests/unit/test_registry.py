"""Unit tests for the loan registry"""

import threading
import pytest
from datetime import datetime, timedelta, timezone
from biblioteca_gateway.domain.exceptions import (
    ForbiddenError,
    NotFoundError,
    NotificationError,
    ValidationError,
)
from biblioteca_gateway.domain.policy import PolicyConfig, build_policy
from biblioteca_gateway.domain.registry import LoanRegistry
from biblioteca_gateway.infrastructure.memory import (
    InMemoryBookCatalog,
    InMemoryLoanStore,
    InMemoryUserDirectory,
    RoleSet,
)


def ids(views):
    return sorted(v.id for v in views)


# Listing and filters

def test_list_all_enriches_with_joined_data(registry):
    views = {v.id: v for v in registry.list_loans()}

    assert set(views) == {"L1", "L2", "L3", "L4"}
    l1 = views["L1"]
    assert l1.libro_titulo == "Cien años de soledad"
    assert l1.usuario == "Ana García"
    assert l1.user_email == "Ana.Garcia@uni.edu"
    assert l1.user_role == "estudiante"


def test_overdue_flag_per_loan(registry):
    flags = {v.id: v.vencido for v in registry.list_loans(estado="all")}
    assert flags == {"L1": True, "L2": False, "L3": False, "L4": False}


def test_vencido_filter_returns_overdue_and_flagged(registry):
    assert ids(registry.list_loans(estado="vencido")) == ["L1", "L4"]


def test_exact_status_filter(registry):
    assert ids(registry.list_loans(estado="prestado")) == ["L1", "L2"]
    assert ids(registry.list_loans(estado="devuelto")) == ["L3"]
    assert ids(registry.list_loans(estado="retrasado")) == ["L4"]


def test_unknown_status_filter_rejected(registry):
    with pytest.raises(ValidationError):
        registry.list_loans(estado="perdido")


def test_search_by_email_substring(registry):
    views = registry.list_loans(query="GARCIA@uni")
    assert ids(views) == ["L1", "L3"]
    assert all("garcia@uni" in v.user_email.lower() for v in views)


def test_search_by_title_and_name(registry):
    assert ids(registry.list_loans(query="quijote")) == ["L2"]
    assert ids(registry.list_loans(query="luis pér")) == ["L2", "L4"]


def test_empty_query_returns_status_filtered_set(registry):
    assert ids(registry.list_loans(estado="prestado", query="")) == ids(registry.list_loans(estado="prestado"))


def test_status_and_query_are_anded(registry):
    assert ids(registry.list_loans(estado="vencido", query="luis")) == ["L4"]
    assert registry.list_loans(estado="devuelto", query="luis") == []


def test_unknown_book_and_user_fall_back_to_placeholders(policy, clock):
    from biblioteca_gateway.domain.models import LoanRecord

    loan = LoanRecord("X1", "missing-book", "missing-user", clock.now, clock.now, "prestado")
    registry = LoanRegistry(
        store=InMemoryLoanStore([loan]),
        catalog=InMemoryBookCatalog(),
        directory=InMemoryUserDirectory(),
        policy=policy,
        clock=clock,
    )
    view = registry.get_loan("X1")

    assert view.libro_titulo == "Libro desconocido"
    assert view.usuario == "Usuario desconocido"
    assert view.user_email == ""
    assert registry.list_loans(query="desconocido") == [view]


def test_naive_dates_are_read_as_utc(books, users, policy):
    """Dates without tzinfo work against the real UTC clock"""
    from biblioteca_gateway.domain.models import LoanRecord

    naive = LoanRecord("N1", "b1", "u1", datetime(2024, 1, 1), datetime(2024, 1, 15), "prestado")
    registry = LoanRegistry(
        store=InMemoryLoanStore([naive]),
        catalog=InMemoryBookCatalog(books),
        directory=InMemoryUserDirectory(users),
        policy=policy,
    )

    assert naive.fecha_devolucion == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert [v.id for v in registry.list_loans(estado="vencido")] == ["N1"]
    assert registry.get_loan("N1").vencido is True
    assert registry.summarize().vencido == 1


def test_one_clock_reading_per_list(registry, clock):
    registry.list_loans()
    assert clock.calls == 1


def test_overdue_is_recomputed_on_every_read(registry, clock):
    clock.now = datetime(2024, 1, 14, tzinfo=timezone.utc)
    assert registry.get_loan("L1").vencido is False

    clock.now = datetime(2024, 1, 16, tzinfo=timezone.utc)
    assert registry.get_loan("L1").vencido is True
    assert "L1" in ids(registry.list_loans(estado="vencido"))


def test_get_loan_unknown(registry):
    with pytest.raises(NotFoundError):
        registry.get_loan("nope")


def test_summary(registry):
    summary = registry.summarize()
    assert (summary.total, summary.prestado, summary.devuelto, summary.retrasado, summary.vencido) == (4, 2, 1, 1, 2)


# Returns

def test_scenario_return_stops_the_clock(registry):
    before = registry.get_loan("L1")
    assert before.vencido is True

    returned = registry.mark_returned("L1", RoleSet(["administrador"]))

    assert returned.estado == "devuelto"
    assert returned.vencido is False
    assert "L1" not in ids(registry.list_loans(estado="vencido"))


def test_mark_returned_is_idempotent(registry, staff, notifier):
    once = registry.mark_returned("L1", staff)
    twice = registry.mark_returned("L1", staff)

    assert once == twice
    assert notifier.messages == ["Libro devuelto"]


def test_mark_returned_leaves_other_records_untouched(registry, staff):
    before = {loan.id: loan for loan in registry.store.all()}
    registry.mark_returned("L2", staff)
    after = {loan.id: loan for loan in registry.store.all()}

    for loan_id in ("L1", "L3", "L4"):
        assert after[loan_id] is before[loan_id]
    assert after["L2"].estado == "devuelto"
    assert after["L2"].fecha_devolucion == before["L2"].fecha_devolucion


def test_flagged_late_loan_can_be_returned(registry, staff):
    assert registry.mark_returned("L4", staff).estado == "devuelto"


def test_mark_returned_unknown(registry, staff):
    with pytest.raises(NotFoundError):
        registry.mark_returned("nope", staff)


def test_mark_returned_forbidden_for_readers(registry, reader):
    with pytest.raises(ForbiddenError):
        registry.mark_returned("L1", reader)
    assert registry.get_loan("L1").estado == "prestado"


def test_forbidden_does_not_reveal_existence(registry, reader):
    with pytest.raises(ForbiddenError):
        registry.mark_returned("does-not-exist", reader)


# Penalties

def test_scenario_penalty_overwrites(registry, staff, clock):
    registry.apply_penalty("L1", 5, "libro dañado", staff)
    view = registry.apply_penalty("L1", 2, "retraso adicional", staff)

    assert view.penalizacion.dias == 2
    assert view.penalizacion.razon == "retraso adicional"
    assert view.penalizacion.fecha_aplicacion == clock.now
    assert [e.penalty.dias for e in registry.penalty_history("L1")] == [5, 2]


@pytest.mark.parametrize("dias", [0, -1])
def test_penalty_rejects_non_positive_days(registry, staff, dias):
    registry.apply_penalty("L1", 5, "libro dañado", staff)

    with pytest.raises(ValidationError):
        registry.apply_penalty("L1", dias, "otro motivo", staff)

    penalty = registry.get_loan("L1").penalizacion
    assert (penalty.dias, penalty.razon) == (5, "libro dañado")
    assert len(registry.penalty_history("L1")) == 1


def test_penalty_rejects_empty_reason_without_stamping(registry, staff):
    with pytest.raises(ValidationError):
        registry.apply_penalty("L1", 5, "  ", staff)
    assert registry.get_loan("L1").penalizacion is None


def test_penalty_on_returned_loan(registry, staff):
    view = registry.apply_penalty("L3", 3, "devolución tardía", staff)
    assert view.estado == "devuelto"
    assert view.penalizacion.dias == 3


def test_penalty_unknown_loan(registry, staff):
    with pytest.raises(NotFoundError):
        registry.apply_penalty("nope", 3, "motivo", staff)


def test_penalty_forbidden_checked_first(registry, reader):
    with pytest.raises(ForbiddenError):
        registry.apply_penalty("nope", 0, "", reader)


def test_penalty_does_not_change_state(registry, staff):
    assert registry.apply_penalty("L1", 3, "motivo", staff).estado == "prestado"


def test_penalties_for_user(registry, staff):
    registry.apply_penalty("L1", 3, "motivo", staff)
    registry.apply_penalty("L3", 4, "otro", staff)
    registry.apply_penalty("L2", 1, "ajeno", staff)

    assert sorted(e.loan_id for e in registry.penalties_for_user("u1")) == ["L1", "L3"]


def test_penalty_history_unknown_loan(registry):
    with pytest.raises(NotFoundError):
        registry.penalty_history("nope")


# Loan creation

def test_create_loan_uses_role_duration(registry, staff, clock):
    view = registry.create_loan("b5", "u2", staff)

    assert view.estado == "prestado"
    assert view.fecha_prestamo == clock.now
    assert view.fecha_devolucion == clock.now + timedelta(days=15)
    assert view.penalizacion is None
    assert view.vencido is False
    assert registry.get_loan(view.id).libro_titulo == "La casa de los espíritus"


def test_create_loan_unknown_book_or_user(registry, staff):
    with pytest.raises(NotFoundError):
        registry.create_loan("nope", "u1", staff)
    with pytest.raises(NotFoundError):
        registry.create_loan("b5", "nope", staff)


def test_create_loan_role_without_duration(registry, staff):
    with pytest.raises(ValidationError):
        registry.create_loan("b5", "u4", staff)


def test_create_loan_book_already_out(registry, staff):
    with pytest.raises(ValidationError):
        registry.create_loan("b1", "u3", staff)


def test_create_loan_returned_book_can_go_out_again(registry, staff):
    assert registry.create_loan("b3", "u3", staff).book_id == "b3"


def test_create_loan_active_limit(registry, staff, policy):
    registry.set_policy(PolicyConfig(loan_days=dict(policy.loan_days), max_active_loans=2), staff)
    # u2 holds L2 (prestado) and L4 (retrasado)
    with pytest.raises(ValidationError):
        registry.create_loan("b5", "u2", staff)


def test_create_loan_forbidden(registry, reader):
    with pytest.raises(ForbiddenError):
        registry.create_loan("b5", "u1", reader)


# Policy

def test_scenario_set_policy(registry, staff):
    registry.set_policy(PolicyConfig(loan_days={"bibliotecario": 14, "administrador": 30}), staff)
    assert registry.get_policy().loan_days == {"bibliotecario": 14, "administrador": 30}

    with pytest.raises(ValidationError):
        registry.set_policy(PolicyConfig(loan_days={"bibliotecario": 0}), staff)
    assert registry.get_policy().loan_days == {"bibliotecario": 14, "administrador": 30}


def test_policy_change_is_prospective(registry, staff, clock):
    due_before = {loan.id: loan.fecha_devolucion for loan in registry.store.all()}
    registry.set_policy(PolicyConfig(loan_days={"profesor": 1, "estudiante": 1}), staff)

    assert {loan.id: loan.fecha_devolucion for loan in registry.store.all()} == due_before
    assert registry.create_loan("b5", "u1", staff).fecha_devolucion == clock.now + timedelta(days=1)


def test_get_policy_returns_copy(registry):
    registry.get_policy().loan_days["estudiante"] = 999
    assert registry.get_policy().loan_days["estudiante"] == 7


def test_set_policy_forbidden(registry, reader):
    with pytest.raises(ForbiddenError):
        registry.set_policy(build_policy({"estudiante": 1}), reader)
    assert registry.get_policy().loan_days["estudiante"] == 7


def test_invalid_initial_policy_rejected(clock):
    with pytest.raises(ValidationError):
        LoanRegistry(
            store=InMemoryLoanStore(),
            catalog=InMemoryBookCatalog(),
            directory=InMemoryUserDirectory(),
            policy=PolicyConfig(loan_days={}),
            clock=clock,
        )


# Notifications

def test_notifications_sent_after_changes(registry, staff, notifier):
    registry.mark_returned("L1", staff)
    registry.apply_penalty("L1", 5, "libro dañado", staff)
    registry.set_policy(build_policy({"estudiante": 10}), staff)

    assert notifier.messages == [
        "Libro devuelto",
        "Penalización aplicada: 5 días",
        "Configuración de préstamos actualizada",
    ]


def test_failed_notification_does_not_undo_change(registry, staff):
    class BrokenNotifier:
        def notify(self, message):
            raise NotificationError("webhook down")

    registry.notifier = BrokenNotifier()
    view = registry.mark_returned("L1", staff)

    assert view.estado == "devuelto"
    assert registry.get_loan("L1").estado == "devuelto"


def test_no_notification_on_rejected_command(registry, staff, notifier):
    with pytest.raises(ValidationError):
        registry.apply_penalty("L1", 0, "motivo", staff)
    assert notifier.messages == []


# Concurrency

def test_concurrent_penalties_are_not_lost(registry, staff):
    def worker(n):
        registry.apply_penalty("L2", n, f"motivo {n}", staff)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 21)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    history = registry.penalty_history("L2")
    assert sorted(e.penalty.dias for e in history) == list(range(1, 21))
    # last writer wins on the loan itself
    assert registry.get_loan("L2").penalizacion == history[-1].penalty


def test_concurrent_returns_and_penalties_keep_both(registry, staff):
    t1 = threading.Thread(target=registry.mark_returned, args=("L1", staff))
    t2 = threading.Thread(target=registry.apply_penalty, args=("L1", 4, "motivo", staff))
    t1.start()
    t2.start()
    t1.join()
    t2.join()

    loan = registry.get_loan("L1")
    assert loan.estado == "devuelto"
    assert loan.penalizacion.dias == 4
