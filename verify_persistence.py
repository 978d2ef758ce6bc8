import time
import subprocess
import httpx
import sys
import os
import signal
from datetime import datetime, timedelta

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
PLATE = "GJ01PS0001"
DRIVER_EMAIL = "persist_driver@fleetflow.dev"


def start_server(echo=False):
    env = {**os.environ, "DB_ECHO": "True"} if echo else None
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "fleetflow.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False


def find_one(path, **params):
    resp = httpx.get(f"{BASE_URL}{API_PREFIX}{path}", params=params)
    resp.raise_for_status()
    items = resp.json()["items"]
    return items[0] if items else None


def run_verification():
    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Register vehicle and driver
        print("\n--- [Step 2] Registering Vehicle and Driver ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/vehicles", json={
            "name": "Persist-01",
            "model": "Tata Ace",
            "license_plate": PLATE,
            "max_load_capacity": 750,
        })
        if resp.status_code == 400 and resp.json()["details"].get("reason") == "PLATE_TAKEN":
            print("⚠️ Vehicle already exists (persistence working from previous run?)")
            vehicle = find_one("/vehicles", search=PLATE)
        elif resp.status_code == 201:
            vehicle = resp.json()
            print(f"✅ Vehicle Registered: {vehicle['id']}")
        else:
            print(f"❌ Vehicle Registration Failed: {resp.status_code} {resp.text}")
            raise Exception("Vehicle registration failed")

        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/drivers", json={
            "name": "Persist Driver",
            "email": DRIVER_EMAIL,
            "phone": "+919800009999",
            "licence_number": "GJ-DL-PERSIST",
            "licence_type": "VAN_TEMPO",
            "licence_expiry": (datetime.utcnow() + timedelta(days=365)).isoformat(),
            "duty_status": "ON_DUTY",
        })
        if resp.status_code == 400 and resp.json()["details"].get("reason") == "CONTACT_TAKEN":
            print("⚠️ Driver already exists")
            driver = find_one("/drivers", search=DRIVER_EMAIL)
        elif resp.status_code == 201:
            driver = resp.json()
            print(f"✅ Driver Registered: {driver['id']}")
        else:
            print(f"❌ Driver Registration Failed: {resp.status_code} {resp.text}")
            raise Exception("Driver registration failed")

        # 3. Create and dispatch a trip
        print("\n--- [Step 3] Creating and Dispatching Trip ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/trips", json={
            "vehicle_id": vehicle["id"],
            "driver_id": driver["id"],
            "origin_address": "Ahmedabad Depot",
            "destination_address": "Vadodara Hub",
            "cargo_weight": 300,
            "distance": 110,
            "scheduled_start_time": (datetime.utcnow() + timedelta(hours=1)).isoformat(),
        })
        if resp.status_code != 201:
            print(f"❌ Trip Creation Failed: {resp.status_code} {resp.text}")
            raise Exception("Trip creation failed")
        trip = resp.json()["trip"]

        resp = httpx.patch(f"{BASE_URL}{API_PREFIX}/trips/{trip['id']}/dispatch")
        if resp.status_code != 200:
            print(f"❌ Dispatch Failed: {resp.status_code} {resp.text}")
            raise Exception("Dispatch failed")
        print(f"✅ Trip {trip['trip_number']} dispatched")

    finally:
        print("\n--- [Step 4] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # Wait for port release

    # 4. Restart Server
    print("\n--- [Step 5] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        print("\n--- [Step 6] Verifying Trip State (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/trips/{trip['id']}")
        if resp.status_code != 200:
            print(f"❌ Trip Lookup Failed (Persistence Issue?): {resp.status_code} {resp.text}")
            raise Exception("Trip missing after restart")

        detail = resp.json()
        if detail["status"] == "DISPATCHED" and detail["vehicle"]["status"] == "ON_TRIP":
            print("✅ Trip and vehicle state persisted")
        else:
            print(f"❌ Unexpected state: trip={detail['status']} vehicle={detail['vehicle']['status']}")
            raise Exception("State mismatch after restart")

        # Release the resources so the script can be run again
        httpx.patch(
            f"{BASE_URL}{API_PREFIX}/trips/{trip['id']}/cancel",
            json={"reason": "Persistence check"}
        )

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()
