import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.all_models import User, UserRole
from app.utils.auth import get_current_user, get_optional_user, require_roles, require_verified, user_rate_limit
from app.utils.uploads import (
    UPLOAD_CATEGORIES,
    get_category,
    check_file_count,
    validate_upload,
    save_upload,
    resolve_path,
    remove_upload,
    content_type_for,
    format_size,
    stored_avatar_name,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"], dependencies=[Depends(user_rate_limit)])

MEDICAL_ROLES = (UserRole.RADIOLOGIST, UserRole.ADMIN)

async def _reject_unexpected_fields(request: Request, field: str) -> None:
    form = await request.form()
    for key, value in form.multi_items():
        if key != field and not isinstance(value, str):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unexpected file field"
            )

async def _store_batch(
    request: Request,
    kind: str,
    files: Optional[List[UploadFile]],
    user: User,
    description: Optional[str],
) -> List[dict]:
    await _reject_unexpected_fields(request, kind)
    files = files or []
    check_file_count(kind, len(files))
    sizes = [await validate_upload(kind, f) for f in files]

    stored = []
    for upload, size in zip(files, sizes):
        info = await save_upload(kind, upload, size, uploaded_by=user.id)
        info["description"] = description
        stored.append(info)
    return stored

@router.post("/images")
async def upload_images(
    request: Request,
    images: Optional[List[UploadFile]] = File(None),
    description: Optional[str] = Form(None, max_length=500),
    current_user: User = Depends(get_current_user)
):
    files = await _store_batch(request, "images", images, current_user, description)
    return {
        "success": True,
        "message": f"{len(files)} image(s) uploaded successfully",
        "data": {"files": files},
    }

@router.post("/medical", dependencies=[Depends(require_verified)])
async def upload_medical(
    request: Request,
    medical: Optional[List[UploadFile]] = File(None),
    description: Optional[str] = Form(None, max_length=500),
    current_user: User = Depends(require_roles(*MEDICAL_ROLES))
):
    """Imaging studies (DICOM, NIfTI or exported images); radiologists and admins only."""
    files = await _store_batch(request, "medical", medical, current_user, description)
    return {
        "success": True,
        "message": f"{len(files)} medical file(s) uploaded successfully",
        "data": {"files": files},
    }

@router.post("/documents")
async def upload_documents(
    request: Request,
    documents: Optional[List[UploadFile]] = File(None),
    description: Optional[str] = Form(None, max_length=500),
    current_user: User = Depends(get_current_user)
):
    files = await _store_batch(request, "documents", documents, current_user, description)
    return {
        "success": True,
        "message": f"{len(files)} document(s) uploaded successfully",
        "data": {"files": files},
    }

@router.post("/avatar")
async def upload_avatar(
    request: Request,
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    await _reject_unexpected_fields(request, "avatar")
    check_file_count("avatars", 1 if avatar else 0)
    size = await validate_upload("avatars", avatar)
    info = await save_upload("avatars", avatar, size, uploaded_by=current_user.id)

    previous = stored_avatar_name(current_user.avatar)
    current_user.avatar = info["url"]
    db.commit()

    if previous:
        try:
            remove_upload("avatars", previous)
        except HTTPException:
            logger.warning("Previous avatar %s for %s was already gone", previous, current_user.email)

    return {
        "success": True,
        "message": "Avatar uploaded successfully",
        "data": {"file": info, "avatar": info["url"]},
    }

@router.get("/serve/{kind}/{filename}")
async def serve_file(
    kind: str,
    filename: str,
    download: bool = Query(False),
    current_user: Optional[User] = Depends(get_optional_user)
):
    if kind == "medical":
        if current_user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required"
            )
        if current_user.role not in MEDICAL_ROLES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied"
            )

    path = resolve_path(kind, filename)
    if not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found"
        )

    if download:
        return FileResponse(path, media_type=content_type_for(filename), filename=filename)
    return FileResponse(path, media_type=content_type_for(filename))

@router.delete("/{kind}/{filename}")
async def delete_file(
    kind: str,
    filename: str,
    current_user: User = Depends(get_current_user)
):
    if kind not in UPLOAD_CATEGORIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type"
        )
    # TODO: restrict deletes to the uploader once file ownership is stored in the database
    remove_upload(kind, filename)
    return {"success": True, "message": "File deleted successfully"}

@router.get("/info/{kind}")
async def get_upload_info(kind: str):
    config = get_category(kind)
    return {
        "success": True,
        "data": {
            "allowed_types": config["allowed_types"],
            "max_size": config["max_size"],
            "max_size_formatted": format_size(config["max_size"]),
            "max_files": config["max_files"],
        },
    }
