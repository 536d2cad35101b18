from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ..ad import Directory
from ..deps import get_directory
from ..services import (
    ComputerResource,
    ComputerSpec,
    ComputerState,
    GroupResource,
    GroupSpec,
    GroupState,
    ObjectResource,
    ObjectSpec,
    ObjectState,
    OrganizationalUnitResource,
    OrganizationalUnitSpec,
    OrganizationalUnitState,
)

router = APIRouter()


class ComputerUpdate(BaseModel):
    old: ComputerState
    new: ComputerSpec


class OrganizationalUnitUpdate(BaseModel):
    old: OrganizationalUnitState
    new: OrganizationalUnitSpec


class GroupUpdate(BaseModel):
    old: GroupState
    new: GroupSpec


class ObjectUpdate(BaseModel):
    old: ObjectState
    new: ObjectSpec


def _gone(kind: str, name: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} {name} not found")


# ── computers ──

@router.post("/computers/create", response_model=ComputerState)
def computer_create(spec: ComputerSpec, directory: Directory = Depends(get_directory)) -> ComputerState:
    return ComputerResource(directory).create(spec)


@router.post("/computers/read", response_model=ComputerState)
def computer_read(state: ComputerSpec, directory: Directory = Depends(get_directory)) -> ComputerState:
    found = ComputerResource(directory).read(state)
    if found is None:
        raise _gone("computer", state.name)
    return found


@router.post("/computers/update", response_model=ComputerState)
def computer_update(body: ComputerUpdate, directory: Directory = Depends(get_directory)) -> ComputerState:
    return ComputerResource(directory).update(body.old, body.new)


@router.post("/computers/delete", status_code=status.HTTP_204_NO_CONTENT)
def computer_delete(state: ComputerSpec, directory: Directory = Depends(get_directory)) -> None:
    ComputerResource(directory).delete(state)


# ── organizational units ──

@router.post("/ous/create", response_model=OrganizationalUnitState)
def ou_create(spec: OrganizationalUnitSpec, directory: Directory = Depends(get_directory)) -> OrganizationalUnitState:
    return OrganizationalUnitResource(directory).create(spec)


@router.post("/ous/read", response_model=OrganizationalUnitState)
def ou_read(state: OrganizationalUnitSpec, directory: Directory = Depends(get_directory)) -> OrganizationalUnitState:
    found = OrganizationalUnitResource(directory).read(state)
    if found is None:
        raise _gone("ou", state.name)
    return found


@router.post("/ous/update", response_model=OrganizationalUnitState)
def ou_update(body: OrganizationalUnitUpdate, directory: Directory = Depends(get_directory)) -> OrganizationalUnitState:
    return OrganizationalUnitResource(directory).update(body.old, body.new)


@router.post("/ous/delete", status_code=status.HTTP_204_NO_CONTENT)
def ou_delete(state: OrganizationalUnitSpec, directory: Directory = Depends(get_directory)) -> None:
    OrganizationalUnitResource(directory).delete(state)


# ── groups ──

@router.post("/groups/create", response_model=GroupState)
def group_create(spec: GroupSpec, directory: Directory = Depends(get_directory)) -> GroupState:
    return GroupResource(directory).create(spec)


@router.post("/groups/read", response_model=GroupState)
def group_read(state: GroupSpec, directory: Directory = Depends(get_directory)) -> GroupState:
    found = GroupResource(directory).read(state)
    if found is None:
        raise _gone("group", state.name)
    return found


@router.post("/groups/update", response_model=GroupState)
def group_update(body: GroupUpdate, directory: Directory = Depends(get_directory)) -> GroupState:
    return GroupResource(directory).update(body.old, body.new)


@router.post("/groups/delete", status_code=status.HTTP_204_NO_CONTENT)
def group_delete(state: GroupSpec, directory: Directory = Depends(get_directory)) -> None:
    GroupResource(directory).delete(state)


# ── generic objects ──

@router.post("/objects/create", response_model=ObjectState)
def object_create(spec: ObjectSpec, directory: Directory = Depends(get_directory)) -> ObjectState:
    return ObjectResource(directory).create(spec)


@router.post("/objects/read", response_model=ObjectState)
def object_read(state: ObjectSpec, directory: Directory = Depends(get_directory)) -> ObjectState:
    found = ObjectResource(directory).read(state)
    if found is None:
        raise _gone("object", state.dn)
    return found


@router.post("/objects/update", response_model=ObjectState)
def object_update(body: ObjectUpdate, directory: Directory = Depends(get_directory)) -> ObjectState:
    return ObjectResource(directory).update(body.old, body.new)


@router.post("/objects/delete", status_code=status.HTTP_204_NO_CONTENT)
def object_delete(state: ObjectSpec, directory: Directory = Depends(get_directory)) -> None:
    ObjectResource(directory).delete(state)
