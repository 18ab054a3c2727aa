"""
app/api/dependencies.py

Shared FastAPI dependencies for caller identity and upload validation.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, UploadFile, status

from app.domain.furips import ALLOWED_CALLER_ROLES, CallerIdentity, CallerRole, RawSubmission

FLAT_FILE_EXTENSIONS = (".txt", ".csv", ".dat")
FLAT_FILE_CONTENT_TYPES = {
    "text/plain",
    "text/csv",
    "application/csv",
    "application/octet-stream",
    "application/vnd.ms-excel",
}


def get_caller_identity(
    x_user_role: str | None = Header(default=None),
    x_habilitacion_code: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
) -> CallerIdentity:
    """
    Build the caller identity from headers set by the authentication gateway.
    """

    role = (x_user_role or "").strip().upper()
    if not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No autorizado",
        )
    if role not in ALLOWED_CALLER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Rol no reconocido: {role}",
        )

    return CallerIdentity(
        role=role,
        habilitacion_code=(x_habilitacion_code or "").strip() or None,
        display_name=(x_user_name or "").strip(),
        email=(x_user_email or "").strip() or None,
    )


def require_admin(caller: CallerIdentity) -> None:
    if caller.role != CallerRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Solo los administradores pueden realizar esta acción",
        )


def validate_flat_file_upload(file: UploadFile, *, label: str) -> UploadFile:
    """
    Validate that an uploaded regulatory file looks like a flat text file by
    extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    if not filename.endswith(FLAT_FILE_EXTENSIONS) and content_type not in FLAT_FILE_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"El archivo {label} debe ser un archivo plano (.txt).",
        )
    return file


def read_submission(file: UploadFile, *, kind: str, id_envio: str) -> RawSubmission:
    validate_flat_file_upload(file, label=kind)
    try:
        content = file.file.read()
    finally:
        file.file.close()
    return RawSubmission(
        kind=kind,
        file_name=file.filename or f"{kind}.txt",
        content=content,
        id_envio=id_envio,
    )
