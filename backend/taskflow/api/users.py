from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from taskflow.core.database import get_db
from taskflow.core.deps import AuthContext, get_current_principal
from taskflow.core.errors import NotFound
from taskflow.schemas import UserOut
from taskflow.services.users import CredentialStore

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=UserOut)
def get_me(principal: AuthContext = Depends(get_current_principal), db: Session = Depends(get_db)):
    user = CredentialStore(db).get_by_id(principal.user_id)
    if not user:
        raise NotFound("User not found")
    return user
