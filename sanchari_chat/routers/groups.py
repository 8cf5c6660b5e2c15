from fastapi import APIRouter, Depends, Query, Response, status

from sanchari_chat.exceptions import NotAMember, NotFound
from sanchari_chat.schemas.group import Group, GroupCreate, GroupMembersAdd, GroupMessage, GroupMessageCreate, GroupUpdate
from sanchari_chat.services.group_service import GroupService
from sanchari_chat.utils.dependencies import get_current_user_id, get_group_service


router = APIRouter(prefix="/groups", tags=["groups"])


async def _member_group(group_id: str, user_id: str, service: GroupService) -> Group:
    group = await service.get_group(group_id)
    if group is None:
        raise NotFound(f"group {group_id} not found")
    if not group.is_member(user_id):
        raise NotAMember(f"{user_id} is not a member of group {group_id}")
    return group


async def _admin_group(group_id: str, user_id: str, service: GroupService) -> Group:
    group = await _member_group(group_id, user_id, service)
    if not group.is_admin(user_id):
        raise NotAMember(f"{user_id} is not an admin of group {group_id}")
    return group


@router.post("", response_model=Group, status_code=status.HTTP_201_CREATED)
async def create_group(body: GroupCreate, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    group_id = await service.create_group(user_id, body.name, body.image, body.members)
    return await service.get_group(group_id)


@router.get("")
async def list_groups(user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    return {"items": await service.get_user_groups(user_id)}


@router.get("/{group_id}", response_model=Group)
async def get_group(group_id: str, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    return await _member_group(group_id, user_id, service)


@router.patch("/{group_id}", response_model=Group)
async def update_group(group_id: str, body: GroupUpdate, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    await _admin_group(group_id, user_id, service)
    return await service.update_group(group_id, name=body.name, image=body.image)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(group_id: str, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    await _admin_group(group_id, user_id, service)
    await service.delete_group(group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/members", response_model=Group)
async def add_members(group_id: str, body: GroupMembersAdd, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    await _member_group(group_id, user_id, service)
    return await service.add_members(group_id, body.members)


@router.delete("/{group_id}/members/{member_id}", response_model=Group)
async def remove_member(group_id: str, member_id: str, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    if member_id == user_id:
        await _member_group(group_id, user_id, service)
        return await service.leave_group(group_id, user_id)
    await _admin_group(group_id, user_id, service)
    return await service.remove_member(group_id, member_id)


@router.post("/{group_id}/admins/{member_id}", response_model=Group)
async def make_admin(group_id: str, member_id: str, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    await _admin_group(group_id, user_id, service)
    return await service.make_admin(group_id, member_id)


@router.get("/{group_id}/messages")
async def list_group_messages(group_id: str, limit: int = Query(50, ge=1, le=200), user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    await _member_group(group_id, user_id, service)
    return {"items": await service.get_group_messages(group_id, limit=limit)}


@router.post("/{group_id}/messages", response_model=GroupMessage, status_code=status.HTTP_201_CREATED)
async def send_group_message(group_id: str, body: GroupMessageCreate, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    return await service.send_group_message(group_id, user_id, body.sender_name or "", body.text)


@router.post("/{group_id}/read")
async def mark_group_read(group_id: str, user_id: str = Depends(get_current_user_id), service: GroupService = Depends(get_group_service)):
    await service.mark_group_read(group_id, user_id)
    return {"ok": True}
