import asyncio
import unittest
from urllib.parse import parse_qs, urlparse

from aiohttp import web
from aiohttp.test_utils import TestServer

from garagebot.wot_api import WargamingAPIError, WargamingClient


def _vehicle_entry(tank_id: int, tier: int, nation: str, name: str) -> dict:
    return {
        "tank_id": tank_id,
        "name": name,
        "short_name": name,
        "tier": tier,
        "nation": nation,
        "type": "mediumTank",
        "images": {"big_icon": f"https://img.example/{tank_id}.png", "small_icon": None},
    }


class WargamingClientTests(unittest.IsolatedAsyncioTestCase):
    """Runs the client against a local aiohttp app shaped like the Wargaming API."""

    async def asyncSetUp(self) -> None:
        self.requests = []
        self.failing_pages = set()
        self.account_status = 200
        app = web.Application()
        app.router.add_get("/wot/account/info/", self._account_info)
        app.router.add_get("/wot/tanks/stats/", self._tank_stats)
        app.router.add_get("/wot/encyclopedia/vehicles/", self._encyclopedia)
        app.router.add_get("/slow/", self._slow)
        self.server = TestServer(app)
        await self.server.start_server()
        self.client = WargamingClient(
            "app-123",
            api_base=str(self.server.make_url("/")),
            timeout=5,
        )

    async def asyncTearDown(self) -> None:
        await self.client.close()
        await self.server.close()

    async def _account_info(self, request: web.Request) -> web.Response:
        self.requests.append(dict(request.query))
        if self.account_status != 200:
            return web.Response(status=self.account_status, text="upstream down")
        token = request.query.get("access_token")
        account_id = request.query.get("account_id", "42")
        if token == "bad":
            return web.json_response(
                {"status": "error", "error": {"field": "access_token", "message": "INVALID_ACCESS_TOKEN", "code": 407}}
            )
        if token == "nobody":
            return web.json_response({"status": "ok", "meta": {"count": 1}, "data": {account_id: None}})
        return web.json_response(
            {
                "status": "ok",
                "meta": {"count": 1},
                "data": {
                    account_id: {
                        "account_id": int(account_id),
                        "nickname": "Tanker",
                        "statistics": {"all": {"battles": 1234}},
                    }
                },
            }
        )

    async def _tank_stats(self, request: web.Request) -> web.Response:
        self.requests.append(dict(request.query))
        account_id = request.query["account_id"]
        return web.json_response(
            {
                "status": "ok",
                "meta": {"count": 1},
                "data": {
                    account_id: [
                        {"tank_id": 1, "in_garage": True},
                        {"tank_id": 2, "in_garage": False},
                        {"tank_id": 3, "in_garage": None},
                        {"in_garage": True},
                    ]
                },
            }
        )

    async def _encyclopedia(self, request: web.Request) -> web.Response:
        self.requests.append(dict(request.query))
        if "tank_id" in request.query:
            tank_id = request.query["tank_id"]
            entry = _vehicle_entry(int(tank_id), 6, "france", "AMX") if tank_id == "9" else None
            return web.json_response({"status": "ok", "meta": {"count": 1}, "data": {tank_id: entry}})
        page = int(request.query.get("page_no", "1"))
        if page in self.failing_pages:
            return web.json_response({"status": "error", "error": {"message": "SOURCE_NOT_AVAILABLE", "code": 504}})
        pages = {
            1: {"1": _vehicle_entry(1, 5, "ussr", "T-34"), "2": _vehicle_entry(2, 7, "germany", "Tiger I")},
            2: {"3": _vehicle_entry(3, 8, "usa", "M26 Pershing"), "4": None},
        }
        return web.json_response(
            {"status": "ok", "meta": {"count": len(pages[page]), "page_total": 2, "page": page}, "data": pages[page]}
        )

    async def _slow(self, _request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.json_response({"status": "ok", "data": {}})

    async def test_account_info_returns_player(self) -> None:
        player = await self.client.account_info("good-token", "42")
        self.assertEqual(player.account_id, "42")
        self.assertEqual(player.nickname, "Tanker")
        self.assertEqual(player.battles, 1234)
        self.assertEqual(self.requests[-1]["application_id"], "app-123")
        self.assertEqual(self.requests[-1]["access_token"], "good-token")

    async def test_account_info_without_match_returns_none(self) -> None:
        self.assertIsNone(await self.client.account_info("nobody", "42"))

    async def test_api_error_envelope_raises(self) -> None:
        with self.assertRaises(WargamingAPIError) as ctx:
            await self.client.account_info("bad", "42")
        self.assertEqual(ctx.exception.code, 407)
        self.assertIn("INVALID_ACCESS_TOKEN", str(ctx.exception))

    async def test_http_failure_raises(self) -> None:
        self.account_status = 503
        with self.assertRaises(WargamingAPIError) as ctx:
            await self.client.account_info("good-token", "42")
        self.assertEqual(ctx.exception.status, 503)

    async def test_garage_vehicles_reads_in_garage_flag(self) -> None:
        vehicles = await self.client.garage_vehicles("42", "good-token")
        self.assertEqual([(v.tank_id, v.in_garage) for v in vehicles], [(1, True), (2, False), (3, False)])
        self.assertEqual(self.requests[-1]["fields"], "tank_id,in_garage")

    async def test_vehicle_info(self) -> None:
        vehicle = await self.client.vehicle_info(9)
        self.assertEqual(vehicle.name, "AMX")
        self.assertEqual(vehicle.image_url, "https://img.example/9.png")
        self.assertIsNone(await self.client.vehicle_info(10))

    async def test_encyclopedia_reads_every_page(self) -> None:
        vehicles = await self.client.encyclopedia_vehicles()
        self.assertEqual(sorted(vehicles), [1, 2, 3])
        self.assertEqual(vehicles[3].nation, "usa")
        self.assertEqual(vehicles[2].tier, 7)
        self.assertEqual([query["page_no"] for query in self.requests], ["1", "2"])

    async def test_encyclopedia_page_failure_fails_whole_fetch(self) -> None:
        self.failing_pages.add(2)
        with self.assertRaises(WargamingAPIError):
            await self.client.encyclopedia_vehicles()

    async def test_slow_upstream_times_out(self) -> None:
        client = WargamingClient("app-123", api_base=str(self.server.make_url("/")), timeout=0.2)
        try:
            with self.assertRaises(WargamingAPIError):
                await client._get("/slow/")
        finally:
            await client.close()

    async def test_unreachable_upstream_raises(self) -> None:
        client = WargamingClient("app-123", api_base="http://127.0.0.1:9", timeout=2)
        try:
            with self.assertRaises(WargamingAPIError):
                await client.account_info("good-token", "42")
        finally:
            await client.close()

    def test_authorize_url_embeds_redirect(self) -> None:
        url = self.client.authorize_url("https://bot.example/123/")
        parsed = urlparse(url)
        self.assertTrue(parsed.path.endswith("/wot/auth/login/"))
        query = parse_qs(parsed.query)
        self.assertEqual(query["application_id"], ["app-123"])
        self.assertEqual(query["redirect_uri"], ["https://bot.example/123/"])


if __name__ == "__main__":
    unittest.main()
