"""
Seed script — submits sample jobs and drives them through the lifecycle.

Usage:
    python -m scripts.seed_jobs

This:
- submits 3 queries (one of them twice, to show dedup returning the same id)
- triggers POST /process once normally and once with force_fail
- prints the status of every job

Run this after `docker compose up` (or with the API running locally).
"""

import httpx

BASE_URL = "http://localhost:8000"


def seed():
    client = httpx.Client(base_url=BASE_URL, timeout=60.0)

    submissions = [
        {"payload": "weather in Tokyo", "submitter_id": "demo-user"},
        {"payload": "weather in Tokyo", "submitter_id": "demo-user"},   # duplicate
        {"payload": {"query": "exchange rate", "from": "USD", "to": "JPY"}},
        {"payload": "flaky request", "max_retries": 2},
    ]

    print(f"Submitting {len(submissions)} jobs to {BASE_URL}...\n")

    job_ids = []
    for body in submissions:
        resp = client.post("/jobs/", json=body)
        resp.raise_for_status()
        data = resp.json()
        print(f"  [{resp.status_code} {data['status']}] {data['message']} (id: {data['job_id'][:8]}...)")
        if data["job_id"] not in job_ids:
            job_ids.append(data["job_id"])

    print("\nTriggering processing...")
    for force_fail in (False, True):
        resp = client.post("/process", json={"force_fail": force_fail})
        resp.raise_for_status()
        print(f"  force_fail={force_fail}: {resp.json()}")

    print("\nCurrent status:")
    for job_id in job_ids:
        data = client.get(f"/jobs/{job_id}").json()
        extra = data.get("error_message") or data.get("result") or ""
        print(f"  {job_id[:8]}... {data['status']} {extra}")

    print("\nDone! Start a worker (python -m worker.main) to drain the rest.")
    print("Check status:  curl http://localhost:8000/jobs/stats")


if __name__ == "__main__":
    seed()
