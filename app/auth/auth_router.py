from fastapi import APIRouter, Depends
from app.auth.auth_permissions import UserContext, get_current_user, get_current_staff
from app.auth.auth_schemas import RegisterRequest, LoginRequest, ProfileUpdate, TokenResponse
from app.auth import auth_service as service


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: RegisterRequest):
    """
    Student self-registration
    """
    return await service.register_student(data.dict())


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest):
    return await service.login(data.email, data.password)


@router.get("/me")
async def me(user: UserContext = Depends(get_current_user)):
    return await service.get_me(user)


@router.get("/profile")
async def get_profile(user: UserContext = Depends(get_current_user)):
    return await service.get_me(user)


@router.put("/update")
async def update_profile(
    data: ProfileUpdate,
    user: UserContext = Depends(get_current_user)
):
    """
    Update own profile. Password, role and email are not editable here.
    """
    return await service.update_profile(user, data.dict(exclude_none=True))


@router.get("/students/eligible")
async def eligible_students(staff: UserContext = Depends(get_current_staff)):
    return await service.get_eligible_students()
