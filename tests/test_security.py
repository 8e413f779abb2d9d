from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from src.core.security import basic_auth_guard


def build_app() -> FastAPI:
    app = FastAPI()

    @app.get("/admin", dependencies=[Depends(basic_auth_guard())])
    async def admin():
        return {"ok": True}

    @app.get("/docs-page", dependencies=[Depends(basic_auth_guard("Swagger UI"))])
    async def docs_page():
        return {"ok": True}

    return app


async def test_guard_accepts_admin_credentials_and_names_the_realm():
    async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://testserver") as http:
        allowed = await http.get("/admin", auth=("admin", "password"))
        plain = await http.get("/admin")
        realm = await http.get("/docs-page", auth=("admin", "wrong"))

    assert allowed.json() == {"ok": True}
    assert plain.status_code == 401
    assert plain.headers["WWW-Authenticate"] == "Basic"
    assert realm.status_code == 401
    assert realm.headers["WWW-Authenticate"] == 'Basic realm="Swagger UI"'
