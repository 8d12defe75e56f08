from campadmin.entities.models import KidRef, SessionRef, TarifConditionRow
from campadmin.services.registrations import create_pending_registration, resolve_price

SESSION = SessionRef(prix_normal=160.0, prix_local=120.0, tarif_condition_id="tc-1")
CONDITION = TarifConditionRow(id="tc-1", label="Bruxelles", code_postaux_autorises=["1050"], school_ids=["school-9"])


def test_local_price_by_postal_code_or_school() -> None:
    assert resolve_price(SESSION, KidRef(cpostal="1050"), CONDITION) == (120.0, "local")
    assert resolve_price(SESSION, KidRef(cpostal="4000", ecole="school-9"), CONDITION) == (120.0, "local")


def test_normal_price_otherwise() -> None:
    assert resolve_price(SESSION, KidRef(cpostal="4000"), CONDITION) == (160.0, "normal")
    assert resolve_price(SESSION, None, CONDITION) == (160.0, "normal")
    assert resolve_price(SESSION, KidRef(cpostal="1050"), None) == (160.0, "normal")
    assert resolve_price(SessionRef(prix_normal=160.0), KidRef(cpostal="1050"), CONDITION) == (160.0, "normal")


def test_pending_registration_row(gateway) -> None:
    row = create_pending_registration(
        gateway,
        user_id="user-1",
        kid_id="kid-1",
        activity_id="session-1",
        amount=120.0,
        price_type="local",
    )

    assert row["id"].startswith("registrations-")
    assert row["payment_status"] == "pending"
    assert row["reduced_declaration"] is False
