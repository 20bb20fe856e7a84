from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

import crud
from dependencies import AUTH_SESSION_KEY, get_db, ui_login_redirect
from export_utils import backup_to_json_response, decode_upload_bytes
from models import SecurityUpdate
from store import utcnow

router = APIRouter()


def _login_page(request: Request, db: Session, *, error: Optional[str] = None, recovery=None):
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "security_question": crud.get_security_settings(db).question,
            "error": error,
            "recovery": recovery,
        },
    )


def _data_page(request: Request, db: Session, *, result=None):
    info = crud.get_auto_backup(db)
    settings = crud.get_security_settings(db)
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "data.html",
        {
            "auto_backup_timestamp": info.timestamp,
            "has_auto_backup": bool(info.data),
            "security_question": settings.question,
            "security_answer": settings.answer,
            "result": result,
            "is_authenticated": True,
        },
    )


@router.get("/ui/login", response_class=HTMLResponse)
def login_ui(request: Request, db: Session = Depends(get_db)):
    return _login_page(request, db)


@router.post("/ui/login", response_class=HTMLResponse)
def login_ui_post(
    request: Request,
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    if not crud.verify_password(db, password):
        return _login_page(request, db, error="Invalid password.")
    request.session[AUTH_SESSION_KEY] = True
    return RedirectResponse(url="/ui/dashboard", status_code=303)


@router.post("/ui/logout")
def logout_ui(request: Request):
    request.session.pop(AUTH_SESSION_KEY, None)
    return RedirectResponse(url="/ui/login", status_code=303)


@router.post("/ui/recover", response_class=HTMLResponse)
def recover_ui(
    request: Request,
    answer: str = Form(""),
    db: Session = Depends(get_db),
):
    return _login_page(request, db, recovery=crud.recover_password(db, answer))


@router.get("/ui/data", response_class=HTMLResponse)
def data_ui(request: Request, db: Session = Depends(get_db)):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect
    return _data_page(request, db)


@router.post("/ui/settings", response_class=HTMLResponse)
def update_settings_ui(
    request: Request,
    current_password: Optional[str] = Form(None),
    new_password: Optional[str] = Form(None),
    confirm_password: Optional[str] = Form(None),
    question: Optional[str] = Form(None),
    answer: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    body = SecurityUpdate(
        current_password=current_password,
        new_password=new_password or None,
        confirm_password=confirm_password,
        question=question,
        answer=answer,
    )
    result = crud.update_security_settings(db, body)
    if result.success:
        request.app.state.controller.refresh_security()
    return _data_page(request, db, result=result)


@router.get("/ui/data/export")
def export_data_ui(request: Request, db: Session = Depends(get_db)):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    now = utcnow()
    return backup_to_json_response(crud.export_all_data(db, now=now), when=now)


@router.post("/ui/data/import", response_class=HTMLResponse)
async def import_data_ui(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    raw = decode_upload_bytes(await file.read())
    result = crud.import_all_data(db, raw)
    if result.success:
        request.app.state.controller.refresh_all()
    return _data_page(request, db, result=result)


@router.post("/ui/data/restore", response_class=HTMLResponse)
def restore_data_ui(request: Request, db: Session = Depends(get_db)):
    redirect = ui_login_redirect(request)
    if redirect:
        return redirect

    result = crud.restore_auto_backup(db)
    if result.success:
        request.app.state.controller.refresh_all()
    return _data_page(request, db, result=result)
