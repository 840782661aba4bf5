import base64
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings, load_app_config

USERS = [
    {"id": "u-admin", "name": "Ana Admin", "role": "administrador"},
    {"id": "u-rec", "name": "Rita Recepção", "role": "recepcionista"},
    {"id": "u-nurse", "name": "Nair Enfermeira", "role": "enfermeira"},
    {"id": "u-doc", "name": "Dr. Paulo", "role": "medico"},
    {"id": "u-doc2", "name": "Dra. Lia", "role": "medico"},
    {"id": "u-lab", "name": "Lucas Lab", "role": "laboratorio"},
    {"id": "u-pat", "name": "Maria Silva", "role": "paciente", "patientId": "p1"},
]


def _basic_auth_header(username: str, password: str) -> dict:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("utf-8")
    return {"Authorization": f"Basic {token}"}


def _as(user_id: str) -> dict:
    return {"X-User-Id": user_id}


@pytest.fixture
def client() -> TestClient:
    from app.main import create_app

    app = create_app()
    app.state.store.save("users", USERS)
    app.state.store.save("patients", [{"id": "p1", "name": "Maria Silva"}])
    return TestClient(app)


def _create(client, day: str = "2024-06-01", **overrides) -> dict:
    payload = {"patient_id": "p1", "doctor_id": "u-doc", "date": day, "time": "09:00", "type": "Consulta"}
    payload.update(overrides)
    response = client.post("/v1/appointments", json=payload, headers=_as("u-rec"))
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requests_without_known_user_return_401(client):
    assert client.get("/v1/appointments").status_code == 401
    assert client.get("/v1/appointments", headers=_as("ghost")).status_code == 401


def test_encounter_flow_over_http(client):
    apt = _create(client)
    assert apt["status"] == "Agendado"
    apt_id = apt["id"]

    response = client.post(
        f"/v1/appointments/{apt_id}/status",
        json={"status": "Aguardando Atendimento"},
        headers=_as("u-rec"),
    )
    assert response.json()["status"] == "Aguardando Atendimento"

    response = client.post(
        f"/v1/appointments/{apt_id}/triage",
        json={"chief_complaint": "febre", "temp": "38.5", "risk_classification": "orange"},
        headers=_as("u-nurse"),
    )
    assert response.status_code == 200
    assert response.json()["triage"]["chief_complaint"] == "febre"
    assert response.json()["triage"]["vital_signs"]["temp"] == "38.5"

    response = client.post(f"/v1/appointments/{apt_id}/begin", headers=_as("u-doc"))
    assert response.json()["status"] == "Em Atendimento"

    response = client.post(
        f"/v1/appointments/{apt_id}/finalize",
        json={"evolution": "estável", "diagnosis": ""},
        headers=_as("u-doc"),
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "APPT_VALID_001"

    response = client.post(
        f"/v1/appointments/{apt_id}/finalize",
        json={"evolution": "estável", "diagnosis": "J11"},
        headers=_as("u-doc"),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Realizado"
    assert response.json()["diagnosis"] == "J11"


def test_error_responses(client):
    apt = _create(client)

    response = client.post(f"/v1/appointments/{apt['id']}/begin", headers=_as("u-rec"))
    assert response.status_code == 409
    assert response.json()["error_code"] == "APPT_TRANS_001"

    response = client.post(
        "/v1/appointments",
        json={"patient_id": "p1", "date": "2024-06-01", "time": "09:00"},
        headers=_as("u-nurse"),
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "AUTH_ROLE_001"

    response = client.get("/v1/appointments/missing", headers=_as("u-rec"))
    assert response.status_code == 404
    assert response.json()["error_code"] == "STORE_NF_001"


def test_transitions_listing(client):
    apt = _create(client)
    response = client.get(f"/v1/appointments/{apt['id']}/transitions", headers=_as("u-rec"))
    assert [item["status"] for item in response.json()] == ["Aguardando Atendimento", "Cancelado"]


def test_roster_follows_store_changes(client):
    today = date.today().isoformat()
    apt = _create(client, day=today)

    response = client.get("/v1/roster", headers=_as("u-doc"))
    assert [item["id"] for item in response.json()["items"]] == [apt["id"]]

    client.post(
        f"/v1/appointments/{apt['id']}/status", json={"status": "Cancelado"}, headers=_as("u-rec")
    )
    response = client.get("/v1/roster", headers=_as("u-doc"))
    assert response.json()["items"] == []

    assert client.get("/v1/roster", headers=_as("u-nurse")).status_code == 403

    status = client.get("/admin/status", headers=_basic_auth_header("admin", "admin")).json()
    assert status[0]["view_id"] == "roster:u-doc"
    assert status[0]["last_status"] == "sucesso"


def test_history_and_export(client):
    apt = _create(client)

    response = client.get("/v1/patients/p1/history", headers=_as("u-pat"))
    assert response.status_code == 200
    assert [entry["id"] for entry in response.json()] == [apt["id"]]

    assert client.get("/v1/patients/p1/history", headers=_as("u-rec")).status_code == 403

    response = client.post("/v1/patients/p1/export", headers=_as("u-doc"))
    assert response.status_code == 202
    exported = Path(get_settings().export_dir) / response.json()["filename"]
    assert exported.exists()

    logs = client.get(
        "/admin/logs", params={"event": "export_completed"}, headers=_basic_auth_header("admin", "admin")
    ).json()
    assert len(logs) == 1


def test_lab_flow_over_http(client):
    apt = _create(client)

    response = client.post(
        f"/v1/appointments/{apt['id']}/lab-tests",
        json={"testName": "Hemograma", "date": "2024-06-01"},
        headers=_as("u-doc"),
    )
    assert response.status_code == 201
    test_id = response.json()["id"]
    assert response.json()["patient_id"] == "p1"

    response = client.post(
        f"/v1/lab-tests/{test_id}/result", json={"file": "laudo.pdf"}, headers=_as("u-lab")
    )
    assert response.json()["status"] == "Concluído"

    response = client.post(
        f"/v1/lab-tests/{test_id}/opinion", json={"opinion": "normal"}, headers=_as("u-doc")
    )
    assert response.json()["opinion_by"] == "Dr. Paulo"

    response = client.get("/v1/lab-tests", params={"search": "hemo"}, headers=_as("u-pat"))
    assert [item["id"] for item in response.json()] == [test_id]

    assert client.delete(f"/v1/lab-tests/{test_id}", headers=_as("u-doc")).status_code == 403
    assert client.delete(f"/v1/lab-tests/{test_id}", headers=_as("u-admin")).status_code == 200


def test_vaccine_stock_and_vaccination(client):
    response = client.post(
        "/v1/vaccine-stock",
        json={"id": "s1", "name": "Influenza", "batch": "L01", "quantity": 1, "expiry_date": "2000-01-01"},
        headers=_as("u-admin"),
    )
    assert response.status_code == 200

    stock = client.get("/v1/vaccine-stock", headers=_as("u-nurse")).json()
    assert stock[0]["low_stock"] is True
    assert stock[0]["expired"] is True

    response = client.post(
        "/v1/patients/p1/vaccinations",
        json={"vaccine_stock_id": "s1", "dose": "1ª dose"},
        headers=_as("u-nurse"),
    )
    assert response.status_code == 201

    response = client.post(
        "/v1/patients/p1/vaccinations",
        json={"vaccine_stock_id": "s1", "dose": "2ª dose"},
        headers=_as("u-nurse"),
    )
    assert response.status_code == 422

    history = client.get("/v1/patients/p1/history", headers=_as("u-nurse")).json()
    assert history[0]["vaccine_name"] == "Influenza"


def test_admin_config_returns_401_without_auth(client):
    response = client.get("/admin/config")
    assert response.status_code == 401


def test_admin_config_save_updates_values(client):
    headers = _basic_auth_header("admin", "admin")
    response = client.post(
        "/admin/config",
        json={"clinic": {"clinic_id": "UBS_CENTRO", "roster_refresh_seconds": 7}},
        headers=headers,
    )
    assert response.status_code == 200

    load_app_config.cache_clear()
    config = load_app_config().model_dump()
    assert config["clinic"]["clinic_id"] == "UBS_CENTRO"
    assert config["clinic"]["roster_refresh_seconds"] == 7


def test_admin_config_rejects_invalid_values(client):
    headers = _basic_auth_header("admin", "admin")
    response = client.post(
        "/admin/config", json={"clinic": {"roster_refresh_seconds": 0}}, headers=headers
    )
    assert response.status_code == 422
    assert "roster_refresh_seconds deve ser positivo" in response.json()["errors"]


def test_admin_backup_reset_and_restore(client):
    headers = _basic_auth_header("admin", "admin")
    _create(client)

    backup = client.get("/admin/backup", headers=headers).json()
    assert len(backup["collections"]["appointments"]) == 1

    assert client.post("/admin/reset", headers=headers).status_code == 200
    assert client.get("/v1/appointments", headers=_as("u-rec")).status_code == 401

    response = client.post("/admin/restore", json=backup, headers=headers)
    assert response.status_code == 200
    assert len(client.get("/v1/appointments", headers=_as("u-rec")).json()) == 1


def test_admin_logs_filter_by_error_code(client):
    apt = _create(client)
    client.post(f"/v1/appointments/{apt['id']}/begin", headers=_as("u-rec"))

    logs = client.get(
        "/admin/logs",
        params={"error_code": "APPT_TRANS_001"},
        headers=_basic_auth_header("admin", "admin"),
    ).json()
    assert [entry["event"] for entry in logs] == ["transition_rejected"]
    assert logs[0]["actor"] == "Rita Recepção"


def test_other_physician_cannot_act_on_appointment(client):
    apt = _create(client)
    client.post(
        f"/v1/appointments/{apt['id']}/status",
        json={"status": "Aguardando Atendimento"},
        headers=_as("u-rec"),
    )
    client.post(
        f"/v1/appointments/{apt['id']}/triage",
        json={"chief_complaint": "febre"},
        headers=_as("u-nurse"),
    )

    assert client.get(f"/v1/appointments/{apt['id']}", headers=_as("u-doc2")).status_code == 404
    response = client.post(f"/v1/appointments/{apt['id']}/begin", headers=_as("u-doc2"))
    assert response.status_code == 404
    assert response.json()["error_code"] == "STORE_NF_001"
    response = client.post(
        f"/v1/appointments/{apt['id']}/finalize",
        json={"evolution": "estável", "diagnosis": "J11"},
        headers=_as("u-doc2"),
    )
    assert response.status_code == 404

    current = client.get(f"/v1/appointments/{apt['id']}", headers=_as("u-doc")).json()
    assert current["status"] == "Aguardando Médico"
