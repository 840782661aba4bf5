import pytest

from app.core import lab
from app.core.errors import AccessDeniedError, NotFoundError, ValidationError


def _order(store, actor, **overrides):
    form = {"patient_id": "p1", "testName": "Hemograma", "date": "2024-06-01"}
    form.update(overrides)
    return lab.request_test(store, actor, form)


def test_request_test(seeded_store, actors):
    order = _order(seeded_store, actors["doctor"], notes="jejum")

    assert order["status"] == "Pendente"
    assert order["patientName"] == "Maria Silva"
    assert order["requested_by"] == "Dr. Paulo"
    assert order["notes"] == "jejum"


def test_request_urgent_test(seeded_store, actors):
    order = _order(seeded_store, actors["nurse"], urgent=True)
    assert order["status"] == "Urgente"


@pytest.mark.parametrize("role", ["reception", "lab", "patient"])
def test_request_test_denied_roles(seeded_store, actors, role):
    with pytest.raises(AccessDeniedError):
        _order(seeded_store, actors[role])


def test_request_test_validation(seeded_store, actors):
    with pytest.raises(ValidationError):
        _order(seeded_store, actors["doctor"], testName=" ")
    with pytest.raises(ValidationError):
        _order(seeded_store, actors["doctor"], date="01/06/2024")
    assert seeded_store.get("labTests") == []


def test_result_completion_and_opinion(seeded_store, actors):
    order = _order(seeded_store, actors["doctor"])

    with pytest.raises(ValidationError):
        lab.add_opinion(seeded_store, actors["doctor"], order["id"], "normal")
    with pytest.raises(ValidationError):
        lab.update_status(seeded_store, actors["lab"], order["id"], "Concluído")

    done = lab.attach_result(seeded_store, actors["lab"], order["id"], "data:application/pdf;base64,AA==")
    assert done["status"] == "Concluído"
    assert done["performed_by"] == "Lucas Lab"

    opinion = lab.add_opinion(seeded_store, actors["doctor"], order["id"], "sem alterações")
    assert opinion["opinion"] == "sem alterações"
    assert opinion["opinion_by"] == "Dr. Paulo"
    assert opinion["opinion_at"]
    assert opinion["file"].startswith("data:")


def test_lab_permissions(seeded_store, actors):
    order = _order(seeded_store, actors["doctor"])

    with pytest.raises(AccessDeniedError):
        lab.attach_result(seeded_store, actors["nurse"], order["id"], "file")
    with pytest.raises(AccessDeniedError):
        lab.update_status(seeded_store, actors["doctor"], order["id"], "Urgente")
    with pytest.raises(AccessDeniedError):
        lab.add_opinion(seeded_store, actors["lab"], order["id"], "ok")
    with pytest.raises(AccessDeniedError):
        lab.delete_test(seeded_store, actors["doctor"], order["id"])


def test_update_status_rejects_unknown(seeded_store, actors):
    order = _order(seeded_store, actors["doctor"])

    with pytest.raises(ValidationError):
        lab.update_status(seeded_store, actors["lab"], order["id"], "Perdido")
    updated = lab.update_status(seeded_store, actors["lab"], order["id"], "Urgente")
    assert updated["status"] == "Urgente"


def test_delete_test(seeded_store, actors):
    order = _order(seeded_store, actors["doctor"])

    lab.delete_test(seeded_store, actors["admin"], order["id"])

    assert seeded_store.get("labTests") == []
    with pytest.raises(NotFoundError):
        lab.delete_test(seeded_store, actors["admin"], order["id"])
