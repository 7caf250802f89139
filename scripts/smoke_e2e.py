from __future__ import annotations

import argparse
import sys
import uuid

import httpx


def _run(*, base_url: str, admin_username: str, admin_password: str, timeout: float) -> int:
    base_url = base_url.rstrip("/")

    with httpx.Client(trust_env=False, timeout=timeout) as client:
        health = client.get(f"{base_url}/api/system/health")
        health.raise_for_status()

        login = client.post(
            f"{base_url}/api/auth/login",
            data={"username": admin_username, "password": admin_password},
        )
        login.raise_for_status()
        admin = {"Authorization": f"Bearer {login.json()['access_token']}"}

        suffix = uuid.uuid4().hex[:8]
        period = client.post(
            f"{base_url}/api/admin/periods",
            headers=admin,
            json={"name": f"smoke-{suffix}", "startDate": "2026-01-01", "totalWeeks": 4},
        )
        period.raise_for_status()
        period_id = period.json()["period"]["id"]

        # No reset: a smoke run must not wipe balances on a live system.
        act = client.post(
            f"{base_url}/api/admin/periods/{period_id}/activate",
            headers=admin,
            json={"resetData": False},
        )
        act.raise_for_status()

        question = client.post(
            f"{base_url}/api/admin/weekly-reports/questions",
            headers=admin,
            json={"text": f"Smoke question {suffix}", "type": "FIXED", "targetRole": "TUTOR"},
        )
        question.raise_for_status()
        question_id = question.json()["question"]["id"]

        tutor_name = f"smoke_tutor_{suffix}"
        tutor = client.post(
            f"{base_url}/api/admin/users",
            headers=admin,
            json={"username": tutor_name, "password": "pass1234", "role": "TUTOR"},
        )
        tutor.raise_for_status()

        tlogin = client.post(f"{base_url}/api/auth/login", data={"username": tutor_name, "password": "pass1234"})
        tlogin.raise_for_status()
        tutor_headers = {"Authorization": f"Bearer {tlogin.json()['access_token']}"}

        report = client.post(
            f"{base_url}/api/tutor/weekly-reports",
            headers=tutor_headers,
            json={"weekNumber": 1, "fixedCriteria": {question_id: "YAPILDI"}, "status": "SUBMITTED"},
        )
        report.raise_for_status()
        report_id = report.json()["report"]["id"]

        review = client.put(
            f"{base_url}/api/admin/weekly-reports/{report_id}",
            headers=admin,
            json={"status": "APPROVED", "pointsAwarded": 10},
        )
        review.raise_for_status()

        me = client.get(f"{base_url}/api/auth/me", headers=tutor_headers)
        me.raise_for_status()
        points = me.json()["user"]["points"]

        print("base_url=", base_url)
        print("period=", period_id)
        print("report=", report_id, review.json()["report"]["status"])
        print("tutor_points=", points)

        if points != 10:
            print("FAIL: expected the approved report to credit 10 points")
            return 2

    print("OK")
    return 0


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(
        description="End-to-end smoke test: period -> activate -> tutor report -> submit -> approve -> points."
    )
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--timeout", type=float, default=30.0)
    parser.add_argument("--admin-username", default="admin")
    parser.add_argument("--admin-password", required=True)
    args = parser.parse_args(argv)

    try:
        return _run(
            base_url=args.base_url,
            admin_username=args.admin_username,
            admin_password=args.admin_password,
            timeout=args.timeout,
        )
    except httpx.HTTPError as e:
        print("HTTP ERROR:", e)
        return 1
    except Exception as e:
        print("ERROR:", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
