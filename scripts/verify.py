import httpx
import asyncio
import sys

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

async def run_verification() -> bool:
    print(f"🚀  Starting Verification against {BASE_URL}...\n")
    ok = True

    async with httpx.AsyncClient(base_url=BASE_URL, timeout=10.0) as client:
        # 1. Health Check
        print("1. [Health] Checking /health...")
        try:
            resp = await client.get("/health")
            if resp.status_code == 200 and resp.json().get("status") == "ok":
                print("   ✅  Health Check Passed")
            else:
                print(f"   ❌  Health Check Failed: {resp.text}")
                return False
        except httpx.HTTPError as e:
            print(f"   ❌  Connection Error: {e}")
            return False

        # 2. Create Link
        print("\n2. [API] Creating Short Link...")
        long_url = "https://www.example.com/verify"
        resp = await client.post("/urls", json={"originalUrl": long_url, "expireIn": 3_600_000})
        if resp.status_code != 201:
            print(f"   ❌  Create Failed: {resp.status_code} {resp.text}")
            return False
        created = resp.json()
        code = created["shortCode"]
        print(f"   ✅  Created: {created['shortUrl']} (expires {created['expiresAt']})")

        # 3. Rejected expiry
        print("\n3. [API] Verifying expiry validation...")
        resp = await client.post("/urls", json={"originalUrl": long_url, "expireIn": 999})
        if resp.status_code == 400:
            print("   ✅  expireIn=999 rejected")
        else:
            ok = False
            print(f"   ❌  expireIn=999 accepted: {resp.status_code}")

        # 4. Verify Redirect
        print("\n4. [API] Verifying Redirect...")
        resp = await client.get(f"/{code}", follow_redirects=False)
        if resp.status_code == 302 and resp.headers.get("location") == long_url:
            print(f"   ✅  Redirect Location matches: {resp.headers['location']}")
        else:
            ok = False
            print(f"   ❌  Redirect Failed: {resp.status_code} {resp.headers.get('location')}")

        # 5. Verify Info
        print("\n5. [API] Verifying Info...")
        resp = await client.get(f"/urls/{code}/info")
        if resp.status_code == 200:
            info = resp.json()
            if info["url"]["clicks"] == 1 and "deleteToken" not in info["url"]:
                print(f"   ✅  Clicks: 1, expires in {info['status']['timeUntilExpiration']}")
            else:
                ok = False
                print(f"   ❌  Unexpected info payload: {info}")
        else:
            ok = False
            print(f"   ❌  Info Failed: {resp.status_code}")

        # 6. List and Stats
        print("\n6. [API] Verifying List and Stats...")
        links = (await client.get("/urls")).json()
        stats = (await client.get("/stats")).json()
        if any(link["shortCode"] == code for link in links) and stats["totalUrls"] >= 1:
            print(f"   ✅  Listed; stats: {stats['activeUrls']} active, {stats['totalClicks']} clicks")
        else:
            ok = False
            print("   ❌  Link missing from list or stats empty")

        # 7. Delete authorization
        print("\n7. [API] Verifying Delete...")
        resp = await client.delete(f"/urls/{code}", headers={"X-Delete-Token": "wrong-token"})
        if resp.status_code == 403:
            print("   ✅  Wrong token rejected")
        else:
            ok = False
            print(f"   ❌  Wrong token returned {resp.status_code}")
        resp = await client.delete(f"/urls/{code}", headers={"X-Delete-Token": created["deleteToken"]})
        gone = await client.get(f"/{code}", follow_redirects=False)
        if resp.status_code == 204 and gone.status_code == 404:
            print("   ✅  Deleted with creation token")
        else:
            ok = False
            print(f"   ❌  Delete Failed: {resp.status_code}, redirect afterwards {gone.status_code}")

        # 8. Metrics
        print("\n8. [Observability] Verifying Metrics...")
        resp = await client.get("/metrics")
        if resp.status_code == 200 and "http_requests_total" in resp.text:
            print("   ✅  Metrics Endpoint Exposed")
        else:
            ok = False
            print(f"   ❌  Metrics Failed: {resp.status_code}")

    print("\n✨ Verification Complete!" if ok else "\n💥 Verification Failed")
    return ok

if __name__ == "__main__":
    sys.exit(0 if asyncio.run(run_verification()) else 1)
