"""Demo-site routes: registration form, success page, confirmation link."""

import pathlib
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from try_sites.common.config import get_settings
from try_sites.common.exceptions import RecipeNotFoundError, SetupError, TenantNotFoundError
from try_sites.sites.error_token import dump_errors, load_errors
from try_sites.sites.schemas import RegisterUserForm, RequestHostInfo

_TEMPLATES_DIR = pathlib.Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))

router = APIRouter(prefix="/sites", tags=["sites"])


def _get_db():
    from try_sites.deps import get_db
    return get_db()


def _get_registration_service():
    from try_sites.deps import get_registration_service
    return get_registration_service()


def _get_confirmation_service():
    from try_sites.deps import get_confirmation_service
    return get_confirmation_service()


def _get_setup_service():
    from try_sites.deps import get_setup_service
    return get_setup_service()


async def _render_form(request: Request, form: RegisterUserForm, errors: Optional[dict] = None):
    recipes = await _get_setup_service().get_setup_recipes()
    return templates.TemplateResponse(
        request,
        "index.html",
        {"form": form, "errors": errors or {}, "recipes": recipes},
    )


@router.get("", response_class=HTMLResponse, include_in_schema=False)
@router.get("/", response_class=HTMLResponse, include_in_schema=False)
@router.get("/Index", response_class=HTMLResponse)
async def index(request: Request):
    form = RegisterUserForm(handle=_get_registration_service().suggest_handle())
    return await _render_form(request, form)


@router.post("/Index", response_class=HTMLResponse)
async def index_post(
    request: Request,
    handle: str = Form(""),
    site_name: str = Form(""),
    email: str = Form(""),
    recipe_name: str = Form(""),
    accept_terms: bool = Form(False),
):
    form = RegisterUserForm(
        handle=handle,
        site_name=site_name,
        email=email,
        recipe_name=recipe_name,
        accept_terms=accept_terms,
    )
    svc = _get_registration_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.register(
            session,
            form,
            RequestHostInfo.from_request(request),
            str(request.url_for("confirm")),
        )

    if not result.success:
        return await _render_form(request, form, result.errors)
    return RedirectResponse(request.url_for("success").path, status_code=302)


@router.get("/Success", response_class=HTMLResponse)
async def success(request: Request):
    return templates.TemplateResponse(
        request,
        "success.html",
        {"ttl_hours": get_settings().confirmation_ttl_hours},
    )


@router.get("/Confirm")
async def confirm(
    request: Request,
    email: Optional[str] = Query(None),
    handle: Optional[str] = Query(None),
    site_name: Optional[str] = Query(None, alias="siteName"),
    ep: Optional[str] = Query(None),
):
    svc = _get_confirmation_service()
    db = _get_db()
    setup_errors = None
    async with db.get_session() as session:
        try:
            result = await svc.confirm(session, email, handle, site_name, ep)
        except (TenantNotFoundError, RecipeNotFoundError) as e:
            raise HTTPException(status_code=404, detail=e.message)
        except SetupError as e:
            # Caught inside the session so tenant state changes are committed.
            setup_errors = e.errors

    if setup_errors is not None:
        query = urlencode({"e": dump_errors(setup_errors)})
        return RedirectResponse(f"{request.url_for('error').path}?{query}", status_code=302)
    return RedirectResponse(result.location, status_code=302)


@router.get("/Error", response_class=HTMLResponse)
async def error(request: Request, e: Optional[str] = Query(None)):
    return templates.TemplateResponse(request, "error.html", {"errors": load_errors(e)})
