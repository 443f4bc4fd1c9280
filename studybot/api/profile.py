"""Identity endpoints used by the profile form."""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from studybot.chat.controller import AssemblyController, get_chat_controller
from studybot.models.schemas import Identity

router = APIRouter(prefix="/identity", tags=["identity"])


@router.get("", response_model=Identity)
async def get_identity(
    controller: AssemblyController = Depends(get_chat_controller),
) -> Identity:
    """Return the current identity.

    Raises:
        404: The user is anonymous.
    """
    if controller.identity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No identity set")
    return controller.identity


@router.put("", response_model=Identity)
async def put_identity(
    identity: Identity,
    controller: AssemblyController = Depends(get_chat_controller),
) -> Identity:
    """Replace the identity as a whole."""
    controller.set_identity(identity)
    return identity


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_identity(
    controller: AssemblyController = Depends(get_chat_controller),
) -> Response:
    """Forget the identity; the session becomes anonymous."""
    controller.set_identity(None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
