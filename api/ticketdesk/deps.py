from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from functools import lru_cache
from .auth_utils import decode_token
from .db import get_db
from .filter_service import FilterService
from .models import User
from .taxonomy import TaxonomyProvider, load_taxonomy

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    sub = decode_token(token)
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = db.query(User).filter(User.email == sub).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user

@lru_cache(maxsize=1)
def get_taxonomy() -> TaxonomyProvider:
    """Taxonomy from TAXONOMY_FILE, loaded once per process."""
    return load_taxonomy()

def get_filter_service(db: Session = Depends(get_db), taxonomy: TaxonomyProvider = Depends(get_taxonomy)) -> FilterService:
    # One service per request, so the visibility scope is resolved at most once
    return FilterService(db, taxonomy)
