import logging
from datetime import datetime, timedelta

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from movietier import config
from movietier.database import get_db
from movietier.models import User

# --- AUTH UTILS ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/google")


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = dict(data)
    expire = datetime.utcnow() + (expires_delta or timedelta(days=config.ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, config.get_secret_key(), algorithm=config.ALGORITHM)


def verify_google_token(credential: str) -> dict:
    """Returns the verified Google claims. Raises ValueError on any bad token."""
    id_info = id_token.verify_oauth2_token(credential, google_requests.Request(), config.GOOGLE_CLIENT_ID)
    if not id_info.get("email") or not id_info.get("sub"):
        raise ValueError("Invalid token payload")
    return id_info


def sign_in_with_google(db: Session, credential: str):
    id_info = verify_google_token(credential)

    email = id_info["email"]
    name = id_info.get("name") or email
    picture = id_info.get("picture", "")

    # Find or Create User
    user = db.query(User).filter(User.email == email).first()
    if not user:
        user = User(email=email, name=name, picture=picture, google_id=id_info["sub"])
        db.add(user)
        logging.info(f"New user created: {email}")
    else:
        user.name = name
        user.picture = picture
    db.commit()
    db.refresh(user)

    access_token = create_access_token(data={"sub": str(user.id)})
    return user, access_token


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    try:
        payload = jwt.decode(token, config.get_secret_key(), algorithms=[config.ALGORITHM])
        user_id = int(payload["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user
