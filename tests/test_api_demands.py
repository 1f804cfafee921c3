"""
Demand API tests — HTTP status and error-code mapping over the lifecycle service.

Covers: X-User-Id handling, create, list, detail, edit, assign, status,
transitions and history endpoints.
"""

from datetime import date, time

import pytest

from demandflow.models import db
from demandflow.models.audit import DemandStatusAuditLog
from demandflow.models.enums import DemandCategory, DemandStatus as S, Role

MONDAY = date(2025, 10, 20)
TWO_PM = time(14, 0)


def _create_body(**overrides):
    body = {
        "title": "Avaliação nutricional",
        "description": "Paciente com encaminhamento do clínico.",
        "priority": "MEDIUM",
        "category": DemandCategory.NUTRITIONIST.value,
    }
    body.update(overrides)
    return body


class TestAuthentication:

    def test_missing_header(self, client, make_demand):
        demand = make_demand()
        res = client.get(f"/api/v1/demands/{demand.id}")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_unknown_user(self, client, make_demand):
        demand = make_demand()
        res = client.get(f"/api/v1/demands/{demand.id}", headers={"X-User-Id": "9999"})
        assert res.status_code == 401

    def test_user_without_any_membership_sees_not_found(self, client, make_demand):
        from demandflow.models.organization import User

        stranger = User(name="Fulano", email="fulano@example.com")
        db.session.add(stranger)
        db.session.commit()
        demand = make_demand()
        res = client.get(f"/api/v1/demands/{demand.id}", headers={"X-User-Id": str(stranger.id)})
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_member_of_another_unit_forbidden(self, client, organization, make_demand, make_member):
        from demandflow.models.organization import Unit

        branch = Unit(organization_id=organization.id, name="Filial", slug="filial")
        db.session.add(branch)
        db.session.commit()
        clerk = make_member(Role.CLERK, unit_id=branch.id)
        demand = make_demand()
        res = client.get(f"/api/v1/demands/{demand.id}", headers={"X-User-Id": str(clerk.user_id)})
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_unknown_demand(self, client, staff, headers):
        res = client.get("/api/v1/demands/9999", headers=headers(staff[Role.ADMIN]))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


class TestCreateAndList:

    def test_create_201(self, client, unit, applicant, staff, headers):
        res = client.post(
            f"/api/v1/units/{unit.id}/applicants/{applicant.id}/demands",
            json=_create_body(), headers=headers(staff[Role.CLERK]),
        )
        assert res.status_code == 201
        data = res.get_json()
        assert data["demand"]["status"] == "PENDING"
        assert data["demand"]["id"] == data["demand_id"]
        assert data["demand"]["applicant_name"] == "Maria Souza"

    def test_create_validation_400(self, client, unit, applicant, staff, headers):
        res = client.post(
            f"/api/v1/units/{unit.id}/applicants/{applicant.id}/demands",
            json=_create_body(title="ab"), headers=headers(staff[Role.CLERK]),
        )
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "title" in body["details"]

    def test_create_forbidden_for_billing(self, client, unit, applicant, staff, headers):
        res = client.post(
            f"/api/v1/units/{unit.id}/applicants/{applicant.id}/demands",
            json=_create_body(), headers=headers(staff[Role.BILLING]),
        )
        assert res.status_code == 403

    def test_list_scoped_for_analyst(self, client, unit, staff, headers, make_demand, make_member):
        mine = make_demand(responsible=staff[Role.ANALYST])
        make_demand(responsible=make_member(Role.ANALYST))

        res = client.get(f"/api/v1/units/{unit.id}/demands", headers=headers(staff[Role.ANALYST]))
        assert res.status_code == 200
        data = res.get_json()
        assert [d["id"] for d in data["items"]] == [mine.id]
        assert data["pagination"]["total"] == 1

    def test_list_bad_sort(self, client, unit, staff, headers):
        res = client.get(f"/api/v1/units/{unit.id}/demands?sort_by=title", headers=headers(staff[Role.ADMIN]))
        assert res.status_code == 400


class TestDetailAndEdit:

    def test_analyst_forbidden_on_unassigned(self, client, staff, headers, make_demand):
        demand = make_demand()
        res = client.get(f"/api/v1/demands/{demand.id}", headers=headers(staff[Role.ANALYST]))
        assert res.status_code == 403

    def test_analyst_sees_own(self, client, staff, headers, make_demand):
        demand = make_demand(responsible=staff[Role.ANALYST])
        res = client.get(f"/api/v1/demands/{demand.id}", headers=headers(staff[Role.ANALYST]))
        assert res.status_code == 200
        assert res.get_json()["responsible"]["name"] == "Paula Psicóloga"

    def test_edit_details(self, client, staff, headers, make_demand):
        demand = make_demand()
        res = client.patch(f"/api/v1/demands/{demand.id}", json={"priority": "URGENT"},
                           headers=headers(staff[Role.CLERK]))
        assert res.status_code == 200
        assert res.get_json()["priority"] == "URGENT"

    def test_edit_cannot_change_status(self, client, staff, headers, make_demand):
        demand = make_demand()
        res = client.patch(f"/api/v1/demands/{demand.id}", json={"status": "BILLED"},
                           headers=headers(staff[Role.ADMIN]))
        assert res.status_code == 400


class TestAssign:

    @pytest.fixture()
    def psychologist(self, make_member):
        return make_member(Role.ANALYST, working_days=["SEGUNDA", "QUARTA", "SEXTA"],
                           job_title=DemandCategory.PSYCHOLOGIST.value)

    def _assign(self, client, headers, demand_id, member_id, who, day="2025-10-20", at="14:00"):
        return client.patch(
            f"/api/v1/demands/{demand_id}/assign",
            json={"member_id": member_id, "date": day, "time": at},
            headers=headers(who),
        )

    def test_assign_ok(self, client, staff, headers, make_demand, psychologist):
        demand = make_demand()
        res = self._assign(client, headers, demand.id, psychologist.id, staff[Role.CLERK])
        assert res.status_code == 200
        data = res.get_json()
        assert data["responsible_id"] == psychologist.id
        assert data["scheduled_date"] == "2025-10-20"
        assert data["scheduled_time"] == "14:00"

    def test_not_working_day_409(self, client, staff, headers, make_demand, psychologist):
        demand = make_demand()
        res = self._assign(client, headers, demand.id, psychologist.id, staff[Role.CLERK], day="2025-10-21")
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_NOT_WORKING_DAY"
        assert body["details"]["weekday"] == "TERCA"

    def test_slot_booked_409(self, client, staff, headers, make_demand, psychologist):
        booked = make_demand(responsible=psychologist, scheduled_date=MONDAY, scheduled_time=TWO_PM)
        demand = make_demand()
        res = self._assign(client, headers, demand.id, psychologist.id, staff[Role.CLERK])
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_SLOT_BOOKED"
        assert body["details"]["conflicting_demand_id"] == booked.id

    def test_missing_fields(self, client, staff, headers, make_demand):
        demand = make_demand()
        res = client.patch(f"/api/v1/demands/{demand.id}/assign", json={"member_id": 1},
                           headers=headers(staff[Role.CLERK]))
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"date", "time"}

    def test_bad_time_format(self, client, staff, headers, make_demand, psychologist):
        demand = make_demand()
        res = self._assign(client, headers, demand.id, psychologist.id, staff[Role.CLERK], at="14h")
        assert res.status_code == 400


class TestStatus:

    def test_clerk_cannot_bill_403(self, client, staff, headers, make_demand):
        demand = make_demand(status=S.RESOLVED)
        res = client.patch(f"/api/v1/demands/{demand.id}/status", json={"status": "BILLED"},
                           headers=headers(staff[Role.CLERK]))
        assert res.status_code == 403
        body = res.get_json()
        assert body["error"] == "Role CLERK cannot alter demands with status RESOLVED"
        assert body["details"] == {"role": "CLERK", "from": "RESOLVED", "to": "BILLED"}

    def test_billing_bills(self, client, staff, headers, make_demand):
        demand = make_demand(status=S.RESOLVED)
        res = client.patch(
            f"/api/v1/demands/{demand.id}/status",
            json={"status": "BILLED", "reason": "Fatura emitida", "metadata": {"invoice": "F-9"}},
            headers=headers(staff[Role.BILLING]),
        )
        assert res.status_code == 200
        data = res.get_json()
        assert data["demand"]["status"] == "BILLED"
        assert data["audit_record"]["previous_status"] == "RESOLVED"
        assert data["audit_record"]["metadata"] == {"invoice": "F-9"}
        assert DemandStatusAuditLog.query.filter_by(demand_id=demand.id).count() == 1

    def test_illegal_transition_422(self, client, staff, headers, make_demand):
        demand = make_demand(status=S.PENDING)
        res = client.patch(f"/api/v1/demands/{demand.id}/status", json={"status": "BILLED"},
                           headers=headers(staff[Role.ADMIN]))
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_ILLEGAL_TRANSITION"

    def test_same_status_no_audit(self, client, staff, headers, make_demand):
        demand = make_demand(status=S.PENDING)
        res = client.patch(f"/api/v1/demands/{demand.id}/status", json={"status": "PENDING"},
                           headers=headers(staff[Role.CLERK]))
        assert res.status_code == 200
        assert res.get_json()["audit_record"] is None

    def test_status_required(self, client, staff, headers, make_demand):
        demand = make_demand()
        res = client.patch(f"/api/v1/demands/{demand.id}/status", json={}, headers=headers(staff[Role.ADMIN]))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_metadata_must_be_object(self, client, staff, headers, make_demand):
        demand = make_demand()
        res = client.patch(f"/api/v1/demands/{demand.id}/status",
                           json={"status": "CHECK_IN", "metadata": ["x"]},
                           headers=headers(staff[Role.ADMIN]))
        assert res.status_code == 400

    def test_transitions_and_history(self, client, staff, headers, make_demand):
        demand = make_demand(status=S.PENDING)
        res = client.get(f"/api/v1/demands/{demand.id}/transitions", headers=headers(staff[Role.CLERK]))
        assert res.get_json()["transitions"] == ["CHECK_IN", "IN_PROGRESS", "RESOLVED"]

        client.patch(f"/api/v1/demands/{demand.id}/status", json={"status": "CHECK_IN"},
                     headers=headers(staff[Role.CLERK]))
        res = client.get(f"/api/v1/demands/{demand.id}/history", headers=headers(staff[Role.MANAGER]))
        data = res.get_json()
        assert data["total"] == 1
        assert data["items"][0]["changed_by_user_name"] == "Clara Clerk"
        assert data["items"][0]["changed_by_role"] == "CLERK"


class TestOtherOrganization:

    @pytest.fixture()
    def outside_admin(self):
        from demandflow.models.organization import Member, Organization, Unit, User

        org = Organization(name="Outra Clínica", slug="outra-clinica")
        db.session.add(org)
        db.session.flush()
        branch = Unit(organization_id=org.id, name="Sede", slug="sede")
        user = User(name="Otto Admin", email="otto@outra.test")
        db.session.add_all([branch, user])
        db.session.flush()
        member = Member(user_id=user.id, organization_id=org.id, unit_id=branch.id,
                        organization_role=Role.ADMIN.value)
        db.session.add(member)
        db.session.commit()
        return member

    def test_demand_is_not_found(self, client, headers, make_demand, outside_admin):
        demand = make_demand()
        res = client.get(f"/api/v1/demands/{demand.id}", headers=headers(outside_admin))
        assert res.status_code == 404
        body = res.get_json()
        assert body["code"] == "ERR_NOT_FOUND"
        assert body["error"] == f"Demand id={demand.id} not found"

    def test_status_change_is_not_found(self, client, headers, make_demand, outside_admin):
        demand = make_demand()
        res = client.patch(f"/api/v1/demands/{demand.id}/status", json={"status": "CHECK_IN"},
                           headers=headers(outside_admin))
        assert res.status_code == 404
        assert DemandStatusAuditLog.query.filter_by(demand_id=demand.id).count() == 0

    def test_unit_listing_is_not_found(self, client, unit, headers, make_demand, outside_admin):
        make_demand()
        res = client.get(f"/api/v1/units/{unit.id}/demands", headers=headers(outside_admin))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"
