from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from learnhub.accounts import AccountService
from learnhub.config import COOKIE_EXPIRE_DAYS
from learnhub.dependencies import authorize_roles, current_user, get_account_service, get_store
from learnhub.errors import NotFound
from learnhub.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    Principal,
    RegisterRequest,
    ResetPasswordRequest,
    RoleUpdateRequest,
    UpdatePasswordRequest,
    UpdateProfileRequest,
)
from learnhub.store import CredentialStore

router = APIRouter(tags=["users"])


def send_token(principal: Principal, token: str, status_code: int = 200) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content={"success": True, "user": principal.public(), "token": token},
    )
    response.set_cookie(
        "token",
        token,
        max_age=COOKIE_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post("/register")
async def register(payload: RegisterRequest, accounts: AccountService = Depends(get_account_service)):
    principal, token = await accounts.register(payload.name, payload.email, payload.password)
    return send_token(principal, token, 201)


@router.post("/login")
async def login(payload: LoginRequest, accounts: AccountService = Depends(get_account_service)):
    principal, token = await accounts.login(payload.email, payload.password)
    return send_token(principal, token)


@router.post("/admin/login")
async def admin_login(payload: LoginRequest, accounts: AccountService = Depends(get_account_service)):
    principal, token = await accounts.login(payload.email, payload.password, required_role="admin")
    return send_token(principal, token)


@router.post("/tutor/login")
async def tutor_login(payload: LoginRequest, accounts: AccountService = Depends(get_account_service)):
    principal, token = await accounts.login(payload.email, payload.password, required_role="tutor")
    return send_token(principal, token)


@router.get("/logout")
async def logout():
    response = JSONResponse(content={"success": True, "message": "Logged out"})
    response.delete_cookie("token", httponly=True, samesite="lax")
    return response


@router.post("/password/forgot")
async def forgot_password(payload: ForgotPasswordRequest, accounts: AccountService = Depends(get_account_service)):
    principal = await accounts.request_reset(payload.email)
    return {"success": True, "message": f"Email sent to {principal.email} successfully"}


@router.put("/password/reset")
async def reset_password(payload: ResetPasswordRequest, accounts: AccountService = Depends(get_account_service)):
    principal, token = await accounts.submit_reset(payload.otp, payload.password, payload.confirm_password)
    return send_token(principal, token)


@router.put("/password/update")
async def update_password(
    payload: UpdatePasswordRequest,
    user: Principal = Depends(current_user),
    accounts: AccountService = Depends(get_account_service),
):
    principal, token = await accounts.update_password(
        user.id, payload.old_password, payload.new_password, payload.confirm_password
    )
    return send_token(principal, token)


@router.get("/me")
async def get_user_details(user: Principal = Depends(current_user)):
    return {"success": True, "user": user.public()}


@router.put("/me/update")
async def update_profile(
    payload: UpdateProfileRequest,
    user: Principal = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    updated = await store.update_profile(user.id, payload.name.strip())
    if updated is None:
        raise NotFound("User not found")
    return {"success": True, "message": "User details updated successfully", "user": updated.public()}


# Admin

@router.get("/admin/users")
async def get_all_users(
    _: Principal = Depends(authorize_roles("admin")),
    store: CredentialStore = Depends(get_store),
):
    users = await store.list_all()
    return {"success": True, "users": [u.public() for u in users]}


@router.get("/admin/user/{user_id}")
async def get_any_user(
    user_id: str,
    _: Principal = Depends(authorize_roles("admin")),
    store: CredentialStore = Depends(get_store),
):
    principal = await store.find_by_id(user_id)
    if principal is None:
        raise NotFound(f"User does not exist with id: {user_id}")
    return {"success": True, "user": principal.public()}


@router.put("/admin/user/{user_id}")
async def update_user_role(
    user_id: str,
    payload: RoleUpdateRequest,
    _: Principal = Depends(authorize_roles("admin")),
    store: CredentialStore = Depends(get_store),
):
    principal = await store.set_role(user_id, payload.role)
    if principal is None:
        raise NotFound(f"User does not exist with id: {user_id}")
    return {"success": True, "message": "User role updated successfully", "user": principal.public()}


@router.delete("/admin/user/{user_id}")
async def delete_user(
    user_id: str,
    _: Principal = Depends(authorize_roles("admin")),
    store: CredentialStore = Depends(get_store),
):
    if not await store.delete(user_id):
        raise NotFound(f"User does not exist with id: {user_id}")
    return {"success": True, "message": "User deleted successfully"}
