"""
Admin, Role and Auth API Endpoint Tests

Operator management, custom roles, the audit log and the dashboard.
"""


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestCurrentOperator:
    """Test /api/auth/me."""

    def test_owner_holds_every_permission(self, client, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["operator"]["is_owner"] is True
        assert data["operator"]["admin_name"] == "owner"
        assert all(data["effective_permissions"].values())

    def test_worker_permissions_come_from_template_and_bag(self, client, create_operator):
        _, token = create_operator("cashier_one", "FINANCE_WORKER", permissions={"balance_adjustments": True})

        permissions = client.get("/api/auth/me", headers=_bearer(token)).json()["effective_permissions"]

        assert permissions["balance_adjustments"] is True
        assert permissions["user_management"] is False
        assert permissions["create_admins"] is False


class TestOperators:
    """Test operator creation and updates."""

    def test_created_operator_gets_department_and_token(self, client, create_operator):
        operator, token = create_operator("finance_lead", "FINANCE_SUPERADMIN")

        assert operator["department"] == "FINANCE"
        assert "api_token_hash" not in operator
        assert client.get("/api/auth/me", headers=_bearer(token)).status_code == 200

    def test_duplicate_admin_name_is_409(self, client, auth_headers, create_operator):
        create_operator("cashier_one", "FINANCE_WORKER")

        response = client.post(
            "/api/admin/operators",
            json={"admin_name": "cashier_one", "email": "other@example.com", "role": "FINANCE_WORKER"},
            headers=auth_headers,
        )
        assert response.status_code == 409

    def test_unknown_role_is_400(self, client, auth_headers):
        response = client.post(
            "/api/admin/operators",
            json={"admin_name": "ghost", "email": "ghost@example.com", "role": "GHOST_KING"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_unknown_permission_is_422(self, client, auth_headers):
        response = client.post(
            "/api/admin/operators",
            json={
                "admin_name": "greedy",
                "email": "greedy@example.com",
                "role": "FINANCE_WORKER",
                "permissions": {"launch_rockets": True},
            },
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_department_superadmin_stays_in_department(self, client, create_operator):
        _, token = create_operator("finance_lead", "FINANCE_SUPERADMIN")

        own = client.post(
            "/api/admin/operators",
            json={"admin_name": "cashier_two", "email": "cashier2@example.com", "role": "FINANCE_WORKER"},
            headers=_bearer(token),
        )
        other = client.post(
            "/api/admin/operators",
            json={"admin_name": "caller_one", "email": "caller1@example.com", "role": "CALL_WORKER"},
            headers=_bearer(token),
        )

        assert own.status_code == 201
        assert other.status_code == 403

    def test_worker_cannot_create_operators(self, client, create_operator):
        _, token = create_operator("cashier_one", "FINANCE_WORKER")

        response = client.post(
            "/api/admin/operators",
            json={"admin_name": "cashier_two", "email": "cashier2@example.com", "role": "FINANCE_WORKER"},
            headers=_bearer(token),
        )
        assert response.status_code == 403

    def test_deactivated_operator_is_locked_out(self, client, auth_headers, create_operator):
        operator, token = create_operator("cashier_one", "FINANCE_WORKER")

        response = client.patch(
            f"/api/admin/operators/{operator['id']}", json={"is_active": False}, headers=auth_headers
        )

        assert response.status_code == 200
        assert client.get("/api/auth/me", headers=_bearer(token)).status_code == 401

    def test_department_superadmin_cannot_update_other_department(self, client, create_operator):
        _, token = create_operator("finance_lead", "FINANCE_SUPERADMIN")
        caller, caller_token = create_operator("caller_one", "CALL_WORKER")

        response = client.patch(
            f"/api/admin/operators/{caller['id']}", json={"is_active": False}, headers=_bearer(token)
        )

        assert response.status_code == 403
        assert client.get("/api/auth/me", headers=_bearer(caller_token)).status_code == 200

    def test_operator_cannot_widen_own_permissions(self, client, create_operator):
        lead, token = create_operator("finance_lead", "FINANCE_SUPERADMIN")

        response = client.patch(
            f"/api/admin/operators/{lead['id']}",
            json={"permissions": {"balance_adjustments": True, "system_settings": True}},
            headers=_bearer(token),
        )

        assert response.status_code == 403
        permissions = client.get("/api/auth/me", headers=_bearer(token)).json()["effective_permissions"]
        assert permissions["balance_adjustments"] is False
        assert permissions["system_settings"] is False

    def test_operator_may_edit_own_contact_details(self, client, create_operator):
        lead, token = create_operator("finance_lead", "FINANCE_SUPERADMIN")

        response = client.patch(
            f"/api/admin/operators/{lead['id']}", json={"phone": "+4912345"}, headers=_bearer(token)
        )

        assert response.status_code == 200
        assert response.json()["phone"] == "+4912345"

    def test_grants_are_limited_to_held_permissions(self, client, create_operator):
        _, token = create_operator("finance_lead", "FINANCE_SUPERADMIN", permissions={"balance_adjustments": True})
        cashier, _ = create_operator("cashier_one", "FINANCE_WORKER")
        url = f"/api/admin/operators/{cashier['id']}"

        held = client.patch(url, json={"permissions": {"balance_adjustments": True}}, headers=_bearer(token))
        not_held = client.patch(url, json={"permissions": {"system_settings": True}}, headers=_bearer(token))

        assert held.status_code == 200
        assert held.json()["permissions"]["balance_adjustments"] is True
        assert not_held.status_code == 403

    def test_department_superadmin_cannot_promote_out_of_department(self, client, create_operator):
        _, token = create_operator("finance_lead", "FINANCE_SUPERADMIN")
        cashier, _ = create_operator("cashier_one", "FINANCE_WORKER")

        response = client.patch(
            f"/api/admin/operators/{cashier['id']}", json={"role": "SUPERADMIN"}, headers=_bearer(token)
        )
        assert response.status_code == 403

    def test_owner_cannot_be_changed_by_others(self, client, auth_headers, create_operator):
        _, token = create_operator("finance_lead", "FINANCE_SUPERADMIN")
        owner_id = client.get("/api/auth/me", headers=auth_headers).json()["operator"]["id"]

        response = client.patch(f"/api/admin/operators/{owner_id}", json={"is_active": False}, headers=_bearer(token))
        assert response.status_code == 403

    def test_list_operators_by_role(self, client, auth_headers, create_operator):
        create_operator("cashier_one", "FINANCE_WORKER")
        create_operator("caller_one", "CALL_WORKER")

        response = client.get("/api/admin/operators", params={"role": "CALL_WORKER"}, headers=auth_headers)
        assert [op["admin_name"] for op in response.json()] == ["caller_one"]


class TestRoles:
    """Test built-in and custom roles."""

    def test_builtin_roles_are_listed(self, client, auth_headers):
        roles = {role["name"]: role for role in client.get("/api/roles", headers=auth_headers).json()}

        assert roles["SUPERADMIN"]["base_type"] == "SUPERADMIN"
        assert roles["LIVE_SUPPORT_ADMIN"]["department"] == "LIVE_SUPPORT"
        assert roles["FINANCE_WORKER"]["builtin"] is True

    def test_custom_role_resolves_through_base_type(self, client, auth_headers, create_operator):
        created = client.post(
            "/api/roles",
            json={
                "name": "VIP_HOSTS",
                "base_type": "DEPARTMENT_WORKER",
                "department": "FINANCE",
                "permissions": {"user_management": True},
            },
            headers=auth_headers,
        )
        assert created.status_code == 201
        assert created.json()["permissions"]["user_management"] is True

        operator, token = create_operator("vip_host", "VIP_HOSTS")
        permissions = client.get("/api/auth/me", headers=_bearer(token)).json()["effective_permissions"]

        assert operator["department"] == "FINANCE"
        assert permissions["user_management"] is True
        assert permissions["manage_roles"] is False

        members = client.get("/api/roles/VIP_HOSTS/admins", headers=auth_headers).json()
        assert [member["admin_name"] for member in members] == ["vip_host"]

    def test_existing_role_is_400(self, client, auth_headers):
        response = client.post(
            "/api/roles", json={"name": "FINANCE_WORKER", "base_type": "DEPARTMENT_WORKER"}, headers=auth_headers
        )
        assert response.status_code == 400

    def test_department_superadmin_cannot_create_foreign_roles(self, client, create_operator):
        _, token = create_operator("finance_lead", "FINANCE_SUPERADMIN")

        foreign = client.post(
            "/api/roles",
            json={"name": "CALL_TEMPS", "base_type": "DEPARTMENT_WORKER", "department": "CALL"},
            headers=_bearer(token),
        )
        own = client.post(
            "/api/roles",
            json={"name": "FINANCE_TEMPS", "base_type": "DEPARTMENT_WORKER", "department": "FINANCE"},
            headers=_bearer(token),
        )

        assert foreign.status_code == 403
        assert own.status_code == 201

    def test_unknown_role_members_is_404(self, client, auth_headers):
        assert client.get("/api/roles/NOBODY/admins", headers=auth_headers).status_code == 404


class TestAuditAndDashboard:
    """Test the audit log and dashboard counters."""

    def test_dashboard_counts_players_and_balances(self, client, auth_headers):
        for name in ("player_one", "player_two"):
            player = client.post(
                "/api/users", json={"username": name, "email": f"{name}@example.com"}, headers=auth_headers
            ).json()
            client.put(
                f"/api/users/{player['id']}/balances",
                json={"operation": "add", "amount": 12.5},
                headers=auth_headers,
            )

        dashboard = client.get("/api/admin/dashboard", headers=auth_headers).json()

        assert dashboard["total_players"] == 2
        assert dashboard["players_by_status"] == {"ACTIVE": 2}
        assert dashboard["balance_totals"]["normal"] == 25.0
        assert dashboard["admin_count"] == 1
        assert dashboard["overall_status"] == "operational"
        assert dashboard["recent_activity"][0]["action"] == "BALANCE_ADJUSTMENT"

    def test_audit_log_filters_by_action(self, client, auth_headers, create_operator):
        create_operator("cashier_one", "FINANCE_WORKER")
        client.get("/api/admin/dashboard", headers=auth_headers)

        entries = client.get("/api/admin/logs", params={"action": "ADMIN_CREATED"}, headers=auth_headers).json()

        assert len(entries) == 1
        assert entries[0]["details"]["admin_name"] == "cashier_one"

    def test_audit_log_requires_report_access(self, client, create_operator):
        _, token = create_operator("cashier_one", "FINANCE_WORKER")
        assert client.get("/api/admin/logs", headers=_bearer(token)).status_code == 403
