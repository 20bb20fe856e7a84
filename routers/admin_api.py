from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

import crud
from dependencies import AUTH_SESSION_KEY, get_db, is_authenticated, require_admin, simulated_latency
from export_utils import backup_to_json_response, decode_upload_bytes
from models import AutoBackupInfo, LoginIn, OperationResult, RecoverIn, SecurityUpdate
from store import utcnow

router = APIRouter(dependencies=[Depends(simulated_latency)])


# -----------------------
# Auth
# -----------------------
@router.post("/auth/login", response_model=OperationResult)
def login_api(
    request: Request,
    body: LoginIn,
    db: Session = Depends(get_db),
):
    if not crud.verify_password(db, body.password):
        raise HTTPException(status_code=401, detail="Invalid password.")
    request.session[AUTH_SESSION_KEY] = True
    return OperationResult(success=True, message="Logged in.")


@router.post("/auth/logout", response_model=OperationResult)
def logout_api(request: Request):
    request.session.pop(AUTH_SESSION_KEY, None)
    return OperationResult(success=True, message="Logged out.")


@router.get("/auth/status")
def auth_status_api(request: Request, db: Session = Depends(get_db)):
    settings = crud.get_security_settings(db)
    return {
        "isAuthenticated": is_authenticated(request),
        "securityQuestion": settings.question,
    }


@router.post("/auth/recover", response_model=OperationResult)
def recover_password_api(
    body: RecoverIn,
    db: Session = Depends(get_db),
):
    return crud.recover_password(db, body.answer)


@router.get("/auth/settings", dependencies=[Depends(require_admin)])
def get_security_settings_api(db: Session = Depends(get_db)):
    settings = crud.get_security_settings(db)
    return {"question": settings.question, "answer": settings.answer}


@router.put("/auth/settings", response_model=OperationResult, dependencies=[Depends(require_admin)])
def update_security_settings_api(
    request: Request,
    body: SecurityUpdate,
    db: Session = Depends(get_db),
):
    result = crud.update_security_settings(db, body)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.message)
    request.app.state.controller.refresh_security()
    return result


# -----------------------
# Data management
# -----------------------
@router.get("/data/export", dependencies=[Depends(require_admin)])
def export_data_api(db: Session = Depends(get_db)):
    now = utcnow()
    data = crud.export_all_data(db, now=now)
    return backup_to_json_response(data, when=now)


@router.post("/data/import", response_model=OperationResult, dependencies=[Depends(require_admin)])
async def import_data_api(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    raw = decode_upload_bytes(await file.read())
    result = crud.import_all_data(db, raw)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.message)
    request.app.state.controller.refresh_all()
    return result


@router.get("/data/auto-backup", response_model=AutoBackupInfo, dependencies=[Depends(require_admin)])
def auto_backup_api(db: Session = Depends(get_db)):
    return crud.get_auto_backup(db)


@router.post("/data/auto-backup/restore", response_model=OperationResult, dependencies=[Depends(require_admin)])
def restore_auto_backup_api(request: Request, db: Session = Depends(get_db)):
    result = crud.restore_auto_backup(db)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.message)
    request.app.state.controller.refresh_all()
    return result
