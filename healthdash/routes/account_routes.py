from fastapi import APIRouter, Depends, HTTPException, Request

from healthdash.routes.deps import SESSION_USER_KEY, get_user_directory, require_user_id
from healthdash.utils.identity import DuplicateEmailError, UserDirectory
from healthdash.utils.models import ActionResponse, AccountRequest, UserAccount
from healthdash.logger import get_logger

logger = get_logger(__name__)

# Minimal stand-in for the identity provider: it only ties a session to a
# registered email. Passwords and account management live outside this service.
# Login asks for the email alone, with no secret, so anyone who knows an
# address can open a session for it. That is the same weakness as the email
# doubling as the watch API key; both need a real credential before this
# service is exposed beyond a trusted network.
router = APIRouter(prefix="/account", tags=["Account"])

@router.post("/register", response_model=UserAccount, status_code=201)
def register(data: AccountRequest, request: Request, directory: UserDirectory = Depends(get_user_directory)):
    try:
        account = directory.register(data.email)
    except DuplicateEmailError as e:
        raise HTTPException(status_code=409, detail=str(e))
    request.session[SESSION_USER_KEY] = account.id
    logger.info(f"Registered user {account.id}")
    return account

@router.post("/login", response_model=UserAccount)
def login(data: AccountRequest, request: Request, directory: UserDirectory = Depends(get_user_directory)):
    account = directory.find_by_email(data.email)
    if account is None:
        logger.warning("Login attempt for an unknown email")
        raise HTTPException(status_code=401, detail="Unknown email.")
    request.session[SESSION_USER_KEY] = account.id
    return account

@router.post("/logout", response_model=ActionResponse)
def logout(request: Request):
    request.session.pop(SESSION_USER_KEY, None)
    return ActionResponse(success=True, message="Logged out")

@router.get("/me", response_model=UserAccount)
def get_current_account(
    user_id: str = Depends(require_user_id),
    directory: UserDirectory = Depends(get_user_directory),
):
    account = directory.get(user_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found.")
    return account
