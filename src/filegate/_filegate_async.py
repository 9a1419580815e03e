"""FileGateAsync — primary async class wiring storage, access control and audit."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from itertools import zip_longest
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from filegate.access import (
    AccessGate,
    FolderTreeService,
    GrantService,
    PermissionResolver,
    ResourceService,
    ShareLinkService,
)
from filegate.audit import (
    AuditAction,
    AuditEvent,
    AuditQueryService,
    AuditRecorder,
    DatabaseAuditSink,
)
from filegate.config import FileGateConfig
from filegate.exceptions import (
    AuthenticationRequiredError,
    ForbiddenError,
    NotFoundError,
    StorageFailureError,
    ValidationError,
)
from filegate.models import AuditLog, File, Folder, Grant, ShareLink
from filegate.permissions import (
    PermissionLevel,
    ResourceRef,
    ResourceType,
    parse_share_link_level,
)
from filegate.types import (
    Caller,
    DashboardStats,
    DeleteResult,
    DownloadResult,
    FileInfo,
    FolderDetails,
    FolderInfo,
    FolderListing,
    GrantInfo,
    GrantResult,
    SearchHit,
    SharedResource,
    ShareLinkInfo,
)
from filegate.utils import as_utc, make_storage_locator, utc_now, validate_name

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Iterable
    from datetime import date, datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

    from filegate.protocols import AuditSink, PrincipalProvider, StorageBackend
    from filegate.types import AuditPage

logger = logging.getLogger(__name__)

_TABLES = (Folder, File, Grant, ShareLink, AuditLog)


class FileGateAsync:
    """Async facade over folders, files, grants, share links and the audit log.

    Every operation takes a ``Caller`` and runs in its own session: the
    session commits when the operation succeeds and rolls back when it
    raises.  Audit events are recorded after the commit, in a separate
    session, and never fail the operation.

    Usage::

        engine = create_async_engine("sqlite+aiosqlite:///filegate.db")
        gate = FileGateAsync(engine=engine, storage=LocalDiskStorage("/srv/blobs"))
        await gate.create_tables()

        alice = Caller(principal_id="alice", ip_address="10.0.0.5")
        docs = await gate.create_folder(alice, "Docs")
        await gate.upload_file(alice, "plan.pdf", data, "application/pdf", docs.id)
    """

    def __init__(
        self,
        *,
        storage: StorageBackend,
        engine: AsyncEngine | None = None,
        session_factory: Callable[..., AsyncSession] | None = None,
        audit_sink: AuditSink | None = None,
        audit: bool = True,
        config: FileGateConfig | None = None,
    ) -> None:
        if engine is not None and session_factory is not None:
            raise ValueError("Provide engine or session_factory, not both")
        if engine is not None:
            session_factory = async_sessionmaker(
                engine, class_=AsyncSession, expire_on_commit=False
            )
        if session_factory is None:
            raise ValueError("Provide engine or session_factory")

        self._session_factory = session_factory
        self._storage = storage
        self._config = config or FileGateConfig()

        if audit and audit_sink is None:
            audit_sink = DatabaseAuditSink(session_factory)
        self._audit = AuditRecorder(audit_sink if audit else None)

        self._resources = ResourceService()
        self._grants = GrantService()
        self._tree = FolderTreeService(
            max_path_depth=self._config.max_path_depth,
            max_cycle_hops=self._config.max_cycle_hops,
        )
        self._share_links = ShareLinkService(token_bytes=self._config.token_bytes)
        self._resolver = PermissionResolver(self._resources, self._grants)
        self._gate = AccessGate(self._resolver, self._share_links)
        self._audit_query = AuditQueryService(
            page_limit_max=self._config.audit_page_limit_max,
            export_limit=self._config.audit_export_limit,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_tables(self) -> None:
        """Create the filegate tables if they do not exist."""
        tables = [model.__table__ for model in _TABLES]  # type: ignore[attr-defined]
        async with self._session() as session:
            conn = await session.connection()
            await conn.run_sync(
                lambda c: SQLModel.metadata.create_all(c, tables=tables, checkfirst=True)
            )

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @property
    def config(self) -> FileGateConfig:
        return self._config

    @property
    def resolver(self) -> PermissionResolver:
        return self._resolver

    @property
    def gate(self) -> AccessGate:
        return self._gate

    # ------------------------------------------------------------------
    # Callers
    # ------------------------------------------------------------------

    @staticmethod
    async def resolve_caller(
        provider: PrincipalProvider,
        credentials: Any,
        *,
        ip_address: str | None = None,
        share_token: str | None = None,
    ) -> Caller:
        """Build a ``Caller`` from request credentials.

        Credentials the provider does not recognise yield an anonymous
        caller, which can still act through *share_token*.
        """
        principal_id = await provider.resolve(credentials) if credentials else None
        return Caller(principal_id=principal_id, ip_address=ip_address, share_token=share_token)

    @staticmethod
    def _require_principal(caller: Caller) -> str:
        if caller.principal_id is None:
            raise AuthenticationRequiredError("Authentication required")
        return caller.principal_id

    async def _authorize(
        self,
        session: AsyncSession,
        caller: Caller,
        ref: ResourceRef,
        required: PermissionLevel,
    ) -> PermissionLevel:
        return await self._gate.require(
            session, caller.principal_id, ref, required, caller.share_token
        )

    async def _require_owner(
        self, session: AsyncSession, principal_id: str, ref: ResourceRef
    ) -> File | Folder:
        """Return the resource if *principal_id* owns it.

        Callers who cannot see the resource get ``NotFoundError``; callers
        who can see it but do not own it get ``ForbiddenError``.
        """
        await self._gate.require(session, principal_id, ref, PermissionLevel.READ)
        resource = await self._resources.get(session, ref)
        if resource is None:
            raise NotFoundError(f"{ref.type.value.capitalize()} not found: {ref.id}")
        if resource.owner_id != principal_id:
            raise ForbiddenError(f"Only the owner can manage access to {ref.type.value} {ref.id}")
        return resource

    async def _record(
        self,
        caller: Caller,
        action: AuditAction,
        ref: ResourceRef | None = None,
        **metadata: Any,
    ) -> None:
        event: AuditEvent
        if ref is None:
            event = AuditEvent(
                action=action,
                principal_id=caller.principal_id,
                ip_address=caller.ip_address,
                metadata=metadata,
            )
        else:
            event = AuditEvent.for_resource(
                action, caller.principal_id, ref, ip_address=caller.ip_address, **metadata
            )
        await self._audit.record(event)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def create_folder(
        self, caller: Caller, name: str, parent_id: str | None = None
    ) -> FolderInfo:
        """Create a folder under *parent_id*, or at the caller's root.

        A subfolder belongs to the owner of its parent, so a collaborator
        with ``write`` on someone else's folder creates folders in that
        owner's tree.
        """
        principal_id = self._require_principal(caller)
        name = validate_name(name, self._config.max_name_length)

        async with self._session() as session:
            owner_id = principal_id
            if parent_id is not None:
                await self._authorize(
                    session, caller, ResourceRef.folder(parent_id), PermissionLevel.WRITE
                )
                parent = await self._resources.require_folder(session, parent_id)
                owner_id = parent.owner_id

            await self._tree.ensure_unique_name(session, owner_id, parent_id, name)
            folder = Folder(owner_id=owner_id, parent_id=parent_id, name=name)
            session.add(folder)
            await session.flush()
            info = self._resources.folder_to_info(folder)

        await self._record(
            caller, AuditAction.FOLDER_CREATE, ResourceRef.folder(info.id),
            name=name, parent_id=parent_id,
        )
        return info

    async def get_folder(self, caller: Caller, folder_id: str) -> FolderDetails:
        async with self._session() as session:
            await self._authorize(
                session, caller, ResourceRef.folder(folder_id), PermissionLevel.READ
            )
            folder = await self._resources.require_folder(session, folder_id)
            path = await self._tree.resolve_path(session, folder)
            return FolderDetails(folder=self._resources.folder_to_info(folder), path=path)

    async def list_folder(self, caller: Caller, folder_id: str | None = None) -> FolderListing:
        """List the immediate children of a folder, or the caller's root."""
        async with self._session() as session:
            if folder_id is None:
                owner_id = self._require_principal(caller)
            else:
                await self._authorize(
                    session, caller, ResourceRef.folder(folder_id), PermissionLevel.READ
                )
                owner_id = (await self._resources.require_folder(session, folder_id)).owner_id

            folders, files = await self._resources.list_children(session, owner_id, folder_id)
            return FolderListing(
                folder_id=folder_id,
                folders=[self._resources.folder_to_info(f) for f in folders],
                files=[self._resources.file_to_info(f) for f in files],
            )

    async def rename_folder(self, caller: Caller, folder_id: str, name: str) -> FolderInfo:
        self._require_principal(caller)
        name = validate_name(name, self._config.max_name_length)
        ref = ResourceRef.folder(folder_id)

        async with self._session() as session:
            await self._authorize(session, caller, ref, PermissionLevel.WRITE)
            folder = await self._resources.require_folder(session, folder_id)
            old_name = folder.name
            await self._tree.ensure_unique_name(
                session, folder.owner_id, folder.parent_id, name, exclude_id=folder.id
            )
            folder.name = name
            folder.updated_at = utc_now()
            await session.flush()
            info = self._resources.folder_to_info(folder)

        await self._record(
            caller, AuditAction.FOLDER_RENAME, ref, old_name=old_name, new_name=name
        )
        return info

    async def move_folder(
        self, caller: Caller, folder_id: str, target_id: str | None
    ) -> FolderInfo:
        """Move a folder under *target_id* (``None`` moves it to the owner's root).

        Every check runs before the parent pointer changes, so a rejected
        move leaves the tree untouched.
        """
        self._require_principal(caller)
        ref = ResourceRef.folder(folder_id)

        async with self._session() as session:
            await self._authorize(session, caller, ref, PermissionLevel.ADMIN)
            folder = await self._resources.require_folder(session, folder_id)

            if target_id is not None:
                await self._authorize(
                    session, caller, ResourceRef.folder(target_id), PermissionLevel.WRITE
                )
                target = await self._resources.require_folder(session, target_id)
                if target.owner_id != folder.owner_id:
                    raise ValidationError("Cannot move a folder into another owner's tree")

            if await self._tree.would_create_cycle(session, folder, target_id):
                raise ValidationError("Cannot move a folder into itself or one of its subfolders")
            await self._tree.ensure_unique_name(
                session, folder.owner_id, target_id, folder.name, exclude_id=folder.id
            )

            from_parent_id = folder.parent_id
            folder.parent_id = target_id
            folder.updated_at = utc_now()
            await session.flush()
            info = self._resources.folder_to_info(folder)

        await self._record(
            caller, AuditAction.FOLDER_MOVE, ref,
            name=info.name, from_parent_id=from_parent_id, to_parent_id=target_id,
        )
        return info

    async def delete_folder(self, caller: Caller, folder_id: str) -> DeleteResult:
        """Delete a folder with every subfolder and file beneath it.

        Storage objects are removed best-effort first; a failed object
        delete is logged and reported in ``storage_failures`` but does
        not stop the database cleanup.
        """
        self._require_principal(caller)
        ref = ResourceRef.folder(folder_id)

        async with self._session() as session:
            await self._authorize(session, caller, ref, PermissionLevel.ADMIN)
            folder = await self._resources.require_folder(session, folder_id)
            name = folder.name
            plan = await self._tree.collect_descendants(session, folder)

            failures = await self._delete_objects(plan.file_locators)

            await self._grants.delete_for_resources(session, plan.file_ids, plan.folder_ids)
            await self._share_links.delete_for_resources(session, plan.file_ids, plan.folder_ids)
            deleted_files = await self._resources.delete_files(session, plan.file_ids)
            deleted_folders = await self._resources.delete_folders(
                session, reversed(plan.folder_ids)
            )

        logger.info(
            "Deleted folder %s: %d folders, %d files, %d storage failures",
            folder_id, deleted_folders, deleted_files, len(failures),
        )
        await self._record(
            caller, AuditAction.FOLDER_DELETE, ref,
            name=name,
            deleted_folders=deleted_folders,
            deleted_files=deleted_files,
            storage_failures=len(failures),
        )
        return DeleteResult(
            resource=ref,
            deleted_files=deleted_files,
            deleted_folders=deleted_folders,
            storage_failures=failures,
        )

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        caller: Caller,
        name: str,
        data: bytes,
        content_type: str,
        folder_id: str | None = None,
    ) -> FileInfo:
        """Store *data* and create its file row.

        The object is written before the row.  If anything after the
        write fails, the object is deleted again so no orphan remains.
        """
        principal_id = self._require_principal(caller)
        name = validate_name(name, self._config.max_name_length)
        allowed = self._config.allowed_mime_types
        if allowed and content_type not in allowed:
            raise ValidationError(f"File type not allowed: {content_type}")
        if len(data) > self._config.max_upload_bytes:
            raise ValidationError(
                f"File exceeds the {self._config.max_upload_bytes} byte upload limit"
            )

        locator: str | None = None
        try:
            async with self._session() as session:
                owner_id = principal_id
                if folder_id is not None:
                    await self._authorize(
                        session, caller, ResourceRef.folder(folder_id), PermissionLevel.WRITE
                    )
                    owner_id = (await self._resources.require_folder(session, folder_id)).owner_id

                candidate = make_storage_locator(owner_id, name)
                stored = await self._storage.upload(candidate, data, content_type)
                if not stored.success:
                    raise StorageFailureError(f"Upload failed: {stored.error}")
                locator = candidate

                file = File(
                    owner_id=owner_id,
                    folder_id=folder_id,
                    name=name,
                    mime_type=content_type,
                    size_bytes=len(data),
                    storage_locator=locator,
                )
                session.add(file)
                await session.flush()
                info = self._resources.file_to_info(file)
        except Exception:
            if locator is not None:
                await self._delete_objects([locator])
            raise

        await self._record(
            caller, AuditAction.FILE_UPLOAD, ResourceRef.file(info.id),
            name=name, size_bytes=info.size_bytes, mime_type=content_type, folder_id=folder_id,
        )
        return info

    async def get_file(self, caller: Caller, file_id: str) -> FileInfo:
        async with self._session() as session:
            await self._authorize(session, caller, ResourceRef.file(file_id), PermissionLevel.READ)
            file = await self._resources.require_file(session, file_id)
            return self._resources.file_to_info(file)

    async def download_file(self, caller: Caller, file_id: str) -> DownloadResult:
        ref = ResourceRef.file(file_id)
        async with self._session() as session:
            await self._authorize(session, caller, ref, PermissionLevel.READ)
            file = await self._resources.require_file(session, file_id)
            info = self._resources.file_to_info(file)
            locator = file.storage_locator

        data = await self._fetch_object(locator)
        await self._record(
            caller, AuditAction.FILE_DOWNLOAD, ref,
            name=info.name, size_bytes=info.size_bytes,
            via_share_link=caller.principal_id is None,
        )
        return DownloadResult(file=info, data=data)

    async def rename_file(self, caller: Caller, file_id: str, name: str) -> FileInfo:
        self._require_principal(caller)
        name = validate_name(name, self._config.max_name_length)
        ref = ResourceRef.file(file_id)

        async with self._session() as session:
            await self._authorize(session, caller, ref, PermissionLevel.WRITE)
            file = await self._resources.require_file(session, file_id)
            old_name = file.name
            file.name = name
            file.updated_at = utc_now()
            await session.flush()
            info = self._resources.file_to_info(file)

        await self._record(caller, AuditAction.FILE_RENAME, ref, old_name=old_name, new_name=name)
        return info

    async def move_file(self, caller: Caller, file_id: str, target_id: str | None) -> FileInfo:
        """Move a file into *target_id* (``None`` moves it to the owner's root)."""
        self._require_principal(caller)
        ref = ResourceRef.file(file_id)

        async with self._session() as session:
            await self._authorize(session, caller, ref, PermissionLevel.WRITE)
            file = await self._resources.require_file(session, file_id)

            if target_id is not None:
                await self._authorize(
                    session, caller, ResourceRef.folder(target_id), PermissionLevel.WRITE
                )
                target = await self._resources.require_folder(session, target_id)
                if target.owner_id != file.owner_id:
                    raise ValidationError("Cannot move a file into another owner's tree")

            from_folder_id = file.folder_id
            file.folder_id = target_id
            file.updated_at = utc_now()
            await session.flush()
            info = self._resources.file_to_info(file)

        await self._record(
            caller, AuditAction.FILE_MOVE, ref,
            name=info.name, from_folder_id=from_folder_id, to_folder_id=target_id,
        )
        return info

    async def delete_file(self, caller: Caller, file_id: str) -> DeleteResult:
        self._require_principal(caller)
        ref = ResourceRef.file(file_id)

        async with self._session() as session:
            await self._authorize(session, caller, ref, PermissionLevel.ADMIN)
            file = await self._resources.require_file(session, file_id)
            name = file.name

            failures = await self._delete_objects([file.storage_locator])

            await self._grants.delete_for_resources(session, file_ids=[file_id])
            await self._share_links.delete_for_resources(session, file_ids=[file_id])
            deleted = await self._resources.delete_files(session, [file_id])

        logger.info("Deleted file %s (%s)", file_id, name)
        await self._record(
            caller, AuditAction.FILE_DELETE, ref, name=name, storage_failures=len(failures)
        )
        return DeleteResult(resource=ref, deleted_files=deleted, storage_failures=failures)

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def grant_permission(
        self,
        caller: Caller,
        ref: ResourceRef,
        grantee_id: str,
        level: PermissionLevel | str,
    ) -> GrantResult:
        """Grant *grantee_id* a level on a resource the caller owns.

        Granting again to the same principal changes the level of the
        existing grant instead of adding a second one.
        """
        principal_id = self._require_principal(caller)
        level = PermissionLevel.parse(level)
        if not grantee_id:
            raise ValidationError("grantee_id is required")
        if grantee_id == principal_id:
            raise ValidationError("Cannot grant permissions to yourself")

        async with self._session() as session:
            await self._require_owner(session, principal_id, ref)
            grant, created, previous = await self._grants.upsert(
                session, ref, grantee_id, level, granted_by=principal_id
            )
            info = self._grants.to_info(grant)

        if created:
            await self._record(
                caller, AuditAction.PERMISSION_CREATE, ref,
                grantee_id=grantee_id, level=level.value,
            )
        else:
            await self._record(
                caller, AuditAction.PERMISSION_UPDATE, ref,
                grantee_id=grantee_id,
                previous_level=previous.value if previous else None,
                level=level.value,
            )
        return GrantResult(grant=info, created=created, previous_level=previous)

    async def update_grant(
        self, caller: Caller, grant_id: str, level: PermissionLevel | str
    ) -> GrantInfo:
        principal_id = self._require_principal(caller)
        level = PermissionLevel.parse(level)

        async with self._session() as session:
            grant = await self._grants.get_by_id(session, grant_id)
            if grant is None:
                raise NotFoundError(f"Grant not found: {grant_id}")
            info = self._grants.to_info(grant)
            await self._require_owner(session, principal_id, info.resource)
            previous = await self._grants.set_level(session, grant, level)
            info = self._grants.to_info(grant)

        await self._record(
            caller, AuditAction.PERMISSION_UPDATE, info.resource,
            grantee_id=info.grantee_id, previous_level=previous.value, level=level.value,
        )
        return info

    async def revoke_grant(self, caller: Caller, grant_id: str) -> GrantInfo:
        principal_id = self._require_principal(caller)

        async with self._session() as session:
            grant = await self._grants.get_by_id(session, grant_id)
            if grant is None:
                raise NotFoundError(f"Grant not found: {grant_id}")
            info = self._grants.to_info(grant)
            await self._require_owner(session, principal_id, info.resource)
            await self._grants.remove(session, grant)

        await self._record(
            caller, AuditAction.PERMISSION_REVOKE, info.resource,
            grantee_id=info.grantee_id, level=info.level.value,
        )
        return info

    async def list_grants(self, caller: Caller, ref: ResourceRef) -> list[GrantInfo]:
        principal_id = self._require_principal(caller)
        async with self._session() as session:
            await self._require_owner(session, principal_id, ref)
            grants = await self._grants.list_for_resource(session, ref)
            return [self._grants.to_info(g) for g in grants]

    # ------------------------------------------------------------------
    # Share links
    # ------------------------------------------------------------------

    async def create_share_link(
        self,
        caller: Caller,
        ref: ResourceRef,
        level: PermissionLevel | str = PermissionLevel.READ,
        expires_at: datetime | None = None,
    ) -> ShareLinkInfo:
        principal_id = self._require_principal(caller)
        level = parse_share_link_level(level)
        _check_future(expires_at)

        async with self._session() as session:
            await self._require_owner(session, principal_id, ref)
            link = await self._share_links.create(
                session, ref, principal_id, level, expires_at=expires_at
            )
            info = self._share_links.to_info(link)

        await self._record(
            caller, AuditAction.SHARE_LINK_CREATE, ref,
            share_link_id=info.id,
            level=level.value,
            expires_at=info.expires_at.isoformat() if info.expires_at else None,
        )
        return info

    async def update_share_link(
        self,
        caller: Caller,
        token: str,
        level: PermissionLevel | str | None = None,
        expires_at: datetime | None = None,
        clear_expiry: bool = False,
    ) -> ShareLinkInfo:
        """Change the level or expiry of a link the caller issued.

        Works on expired links too, so an expired link can be extended.
        """
        principal_id = self._require_principal(caller)
        new_level = parse_share_link_level(level) if level is not None else None
        if new_level is None and expires_at is None and not clear_expiry:
            raise ValidationError("Nothing to update")
        if clear_expiry and expires_at is not None:
            raise ValidationError("Pass either expires_at or clear_expiry, not both")
        _check_future(expires_at)

        async with self._session() as session:
            link = await self._require_issued_link(session, principal_id, token)
            changes = await self._share_links.update(
                session, link, level=new_level, expires_at=expires_at, clear_expiry=clear_expiry
            )
            info = self._share_links.to_info(link)

        if changes:
            await self._record(
                caller, AuditAction.SHARE_LINK_UPDATE, info.resource,
                share_link_id=info.id, **changes,
            )
        return info

    async def revoke_share_link(self, caller: Caller, token: str) -> ShareLinkInfo:
        principal_id = self._require_principal(caller)

        async with self._session() as session:
            link = await self._require_issued_link(session, principal_id, token)
            info = self._share_links.to_info(link)
            await self._share_links.revoke(session, link)

        await self._record(
            caller, AuditAction.SHARE_LINK_REVOKE, info.resource, share_link_id=info.id
        )
        return info

    async def list_share_links(self, caller: Caller, ref: ResourceRef) -> list[ShareLinkInfo]:
        principal_id = self._require_principal(caller)
        async with self._session() as session:
            await self._require_owner(session, principal_id, ref)
            links = await self._share_links.list_for_resource(session, ref)
            return [self._share_links.to_info(link) for link in links]

    async def _require_issued_link(
        self, session: AsyncSession, principal_id: str, token: str
    ) -> ShareLink:
        link = await self._share_links.get(session, token)
        if link is None:
            raise NotFoundError("Share link not found")
        if link.issuer_id != principal_id:
            raise ForbiddenError("Only the issuer can change this share link")
        return link

    async def open_share_link(self, token: str) -> SharedResource:
        """Public view of a share link's target.

        For a folder link, ``files`` holds the files directly inside the
        folder; subfolders are not exposed.
        """
        async with self._session() as session:
            link = await self._share_links.inspect(session, token)
            info = self._share_links.to_info(link)
            resource = await self._resources.get(session, info.resource)
            if resource is None:
                raise NotFoundError("Shared resource no longer exists")

            if isinstance(resource, File):
                return SharedResource(
                    link=info,
                    name=resource.name,
                    owner_id=resource.owner_id,
                    mime_type=resource.mime_type,
                    size_bytes=resource.size_bytes,
                )
            _, files = await self._resources.list_children(
                session, resource.owner_id, resource.id
            )
            return SharedResource(
                link=info,
                name=resource.name,
                owner_id=resource.owner_id,
                files=[self._resources.file_to_info(f) for f in files],
            )

    async def download_shared_file(
        self,
        token: str,
        file_id: str | None = None,
        *,
        ip_address: str | None = None,
    ) -> DownloadResult:
        """Download through a share link without a principal.

        A file link serves its own file.  A folder link serves any file
        directly inside the folder, named by *file_id*.
        """
        async with self._session() as session:
            link = await self._share_links.inspect(session, token)
            if link.resource_type == ResourceType.FILE.value:
                if file_id is not None and file_id != link.resource_id:
                    raise NotFoundError(f"File not found: {file_id}")
                target_id = link.resource_id
            else:
                if file_id is None:
                    raise ValidationError("file_id is required for a folder share link")
                grant = await self._share_links.can_access_file_via_folder_share_link(
                    session, token, file_id
                )
                if grant is None:
                    raise NotFoundError(f"File not found: {file_id}")
                target_id = file_id

            file = await self._resources.require_file(session, target_id)
            info = self._resources.file_to_info(file)
            locator = file.storage_locator
            share_link_id = link.id

        data = await self._fetch_object(locator)
        await self._record(
            Caller(ip_address=ip_address),
            AuditAction.FILE_DOWNLOAD,
            ResourceRef.file(info.id),
            name=info.name,
            size_bytes=info.size_bytes,
            via_share_link=True,
            share_link_id=share_link_id,
        )
        return DownloadResult(file=info, data=data)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self, caller: Caller, query: str, limit: int | None = None
    ) -> list[SearchHit]:
        """Find the caller's own folders and files whose name contains *query*."""
        principal_id = self._require_principal(caller)
        term = query.strip()
        if not term:
            return []
        if limit is None:
            limit = self._config.search_limit
        if not 1 <= limit <= self._config.search_limit:
            raise ValidationError(f"limit must be between 1 and {self._config.search_limit}")

        async with self._session() as session:
            folders, files = await self._resources.search(session, principal_id, term, limit)
            index = await self._tree.load_index(session, principal_id)

        def folder_path(folder_id: str | None) -> str:
            if folder_id is None:
                return ""
            entries = index.resolve_path(folder_id, self._config.max_path_depth)
            return "/" + "/".join(e.name for e in entries)

        folder_hits = [
            SearchHit(ResourceRef.folder(f.id), f.name, folder_path(f.id)) for f in folders
        ]
        file_hits = [
            SearchHit(ResourceRef.file(f.id), f.name, f"{folder_path(f.folder_id)}/{f.name}")
            for f in files
        ]
        # Folders and files alternate until one kind runs out.
        hits = [
            hit
            for pair in zip_longest(folder_hits, file_hits)
            for hit in pair
            if hit is not None
        ]
        return hits[:limit]

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    async def record_login(self, caller: Caller) -> None:
        self._require_principal(caller)
        await self._record(caller, AuditAction.LOGIN)

    async def record_logout(self, caller: Caller) -> None:
        self._require_principal(caller)
        await self._record(caller, AuditAction.LOGOUT)

    async def query_audit(
        self,
        caller: Caller,
        *,
        action: AuditAction | str | None = None,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
        resource_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> AuditPage:
        """Page through the caller's own audit trail, newest first."""
        principal_id = self._require_principal(caller)
        async with self._session() as session:
            return await self._audit_query.query(
                session,
                principal_id,
                action=action,
                date_from=date_from,
                date_to=date_to,
                resource_id=resource_id,
                page=page,
                limit=limit,
            )

    async def export_audit(
        self,
        caller: Caller,
        fmt: str = "csv",
        *,
        action: AuditAction | str | None = None,
        date_from: date | datetime | None = None,
        date_to: date | datetime | None = None,
    ) -> str:
        principal_id = self._require_principal(caller)
        async with self._session() as session:
            return await self._audit_query.export(
                session, principal_id, fmt, action=action, date_from=date_from, date_to=date_to
            )

    async def stats(self, caller: Caller) -> DashboardStats:
        """Totals over the caller's own files and folders, plus their ten latest events."""
        principal_id = self._require_principal(caller)
        async with self._session() as session:
            file_count, total_bytes = (
                await session.execute(
                    select(func.count(), func.coalesce(func.sum(File.size_bytes), 0))
                    .select_from(File)
                    .where(File.owner_id == principal_id)
                )
            ).one()
            folder_count = await session.scalar(
                select(func.count()).select_from(Folder).where(Folder.owner_id == principal_id)
            )
            recent = await self._audit_query.recent(
                session, principal_id, self._config.dashboard_recent_limit
            )
        return DashboardStats(
            total_files=int(file_count),
            total_folders=int(folder_count or 0),
            total_storage_bytes=int(total_bytes),
            recent_activity=recent,
        )

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    async def _fetch_object(self, locator: str) -> bytes:
        result = await self._storage.download(locator)
        if not result.success or result.data is None:
            raise StorageFailureError(f"Download failed: {result.error}")
        return result.data

    async def _delete_objects(self, locators: Iterable[str]) -> list[str]:
        """Delete storage objects best-effort; returns the locators that failed."""
        failures: list[str] = []
        for locator in sorted(locators):
            try:
                result = await self._storage.delete(locator)
            except Exception:
                logger.warning("Storage delete raised for %s", locator, exc_info=True)
                failures.append(locator)
                continue
            if not result.success:
                logger.warning("Storage delete failed for %s: %s", locator, result.error)
                failures.append(locator)
        return failures


def _check_future(expires_at: datetime | None) -> None:
    if expires_at is not None and as_utc(expires_at) <= utc_now():
        raise ValidationError("Expiry must be in the future")
