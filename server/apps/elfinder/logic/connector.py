"""elFinder connector: runs one protocol command per request.

A request goes through these steps:
- the command name is looked up, unknown names are rejected at once
- identifiers are decoded into virtual paths
- the command handler checks permissions and calls the adapter
- the payload is assembled, the adapter is released in any case

Handlers raise `ConnectorError` for fatal errors, which replaces the
payload built so far. Any other failure is logged and reported as a
generic access denied error.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final, final

from django.core.exceptions import ImproperlyConfigured

from server.apps.elfinder.commands import Command
from server.apps.elfinder.exceptions import ConnectorError
from server.apps.elfinder.logic.adapter import Adapter
from server.apps.elfinder.logic.cache import ResponseCache, get_response_cache
from server.apps.elfinder.logic.descriptors import NodeDescriber
from server.apps.elfinder.options import ConnectorOptions
from server.apps.elfinder.path import PathKind, VirtualPath, decode_identifier
from server.apps.elfinder.permissions import PermissionResolver
from server.apps.files.infrastructure.metadata import is_image

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import ObjectStorage

logger = logging.getLogger(__name__)

ACCESS_DENIED: Final = 'Access Denied'
INVALID_PARAMETERS: Final = 'Invalid parameters'
DIRECTORY_NOT_FOUND: Final = 'Directory does not exist'

_REMOVE_FAILED: Final = 'Some files/directories were unable to be removed'

_TRUE_VALUES: Final = frozenset(('1', 'true', 'yes', 'on'))


def _flag(value: object) -> bool:
    """Interpret a boolean request parameter."""
    return str(value).strip().lower() in _TRUE_VALUES


@final
@dataclass
class RequestContext:
    """State of one request, passed to every handler.

    The payload is accumulated in ``response`` while the command runs;
    per-item failures go to ``error_data``.
    """

    command: Command
    params: Mapping[str, Any]
    root: VirtualPath
    describer: NodeDescriber
    current: VirtualPath | None = None
    target: VirtualPath | None = None
    targets: list[VirtualPath] = field(default_factory=list)
    response: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    error_data: dict[str, str] = field(default_factory=dict)

    def fail_item(self, name: str, detail: str, error: str) -> None:
        """Record a per-item failure, keeping the first error message."""
        self.response.setdefault('error', error)
        self.error_data[name] = detail


_Handler = Callable[[RequestContext], None]


def _require(path: VirtualPath | None) -> VirtualPath:
    if path is None:
        raise ConnectorError(INVALID_PARAMETERS)
    return path


def _kind_of(path: VirtualPath) -> PathKind:
    if path.is_directory():
        return PathKind.DIRECTORY
    return PathKind.FILE


def _not_implemented_error(command: Command) -> ConnectorError:
    return ConnectorError(f"Command '{command}' not implemented")


@final
class Connector:
    """Dispatches protocol commands against the object storage.

    One instance may serve many requests, all request state lives in
    the `RequestContext`.
    """

    def __init__(
        self,
        options: ConnectorOptions,
        storage: 'ObjectStorage',
        cache: ResponseCache | None = None,
    ) -> None:
        """Initialize connector.

        Args:
            options: Connector options.
            storage: Object storage backend.
            cache: Response cache, the process wide one by default.

        Raises:
            ImproperlyConfigured: If a command has no handler.
        """
        self._options = options
        self._storage = storage
        self._cache = cache if cache is not None else get_response_cache()
        self._resolver = PermissionResolver(
            options.perms,
            options.default_perms,
        )
        self._handlers: dict[Command, _Handler] = {
            Command.OPEN: self._open,
            Command.LS: self._ls,
            Command.TREE: self._tree,
            Command.MKDIR: self._mkdir,
            Command.MKFILE: self._mkfile,
            Command.RENAME: self._rename,
            Command.UPLOAD: self._upload,
            Command.PASTE: self._paste,
            Command.RM: self._rm,
            Command.GET: self._get,
            Command.FILE: self._file,
            Command.PUT: self._put,
            Command.PING: self._ping,
            Command.TMB: self._tmb,
            Command.DUPLICATE: self._not_implemented,
            Command.EXTRACT: self._not_implemented,
            Command.ARCHIVE: self._not_implemented,
            Command.RESIZE: self._not_implemented,
        }
        missing = set(Command) - self._handlers.keys()
        if missing:
            raise ImproperlyConfigured(
                f'No handler for commands: {sorted(missing)}',
            )

    def run(
        self,
        params: Mapping[str, Any],
    ) -> tuple[dict[str, str], dict[str, Any]]:
        """Run the request-response cycle of one command.

        Args:
            params: Request parameters, ``cmd`` is required.

        Returns:
            Header directives and response payload.
        """
        adapter = Adapter(self._storage, self._cache)
        try:
            return self._dispatch(adapter, params)
        finally:
            adapter.close()

    def _dispatch(
        self,
        adapter: Adapter,
        params: Mapping[str, Any],
    ) -> tuple[dict[str, str], dict[str, Any]]:
        raw_command = params.get('cmd')
        command = Command.parse(raw_command)
        if command is None:
            logger.info('Invalid command requested: %r', raw_command)
            return {}, {'error': f"Invalid command '{raw_command}'"}

        root = VirtualPath(adapter, self._options.root)
        ctx = RequestContext(
            command=command,
            params=params,
            root=root,
            describer=NodeDescriber(root, self._options, self._resolver),
        )
        logger.debug('Running command: %s', command)
        try:
            self._prepare(ctx)
            self._handlers[command](ctx)
        except ConnectorError as error:
            logger.info('Command %s failed: %s', command, error.message)
            ctx.response = {'error': error.message}
            ctx.error_data = error.error_data
        except Exception:
            logger.exception('Command %s failed unexpectedly', command)
            ctx.response = {'error': ACCESS_DENIED}
            ctx.headers = {}
            ctx.error_data = {}

        response = ctx.response
        if ctx.describer.pending_thumbnails and 'error' not in response:
            response['tmb'] = True
        if ctx.error_data:
            response['errorData'] = ctx.error_data
        return ctx.headers, response

    def _prepare(self, ctx: RequestContext) -> None:
        """Create the thumbnails directory and decode identifiers."""
        thumb_directory = ctx.describer.thumb_directory
        if thumb_directory is not None and not thumb_directory.exists():
            thumb_directory.mkdir()
            if not thumb_directory.exists():
                raise RuntimeError('Unable to create thumbs directory')

        params = ctx.params
        if params.get('current'):
            ctx.current = self._decode(ctx, params['current'])
        if params.get('target'):
            ctx.target = self._decode(ctx, params['target'])
        ctx.targets = [
            self._decode(ctx, identifier)
            for identifier in params.get('targets') or ()
        ]

    def _decode(self, ctx: RequestContext, identifier: str) -> VirtualPath:
        path = decode_identifier(identifier, ctx.root)
        if path is None:
            raise ConnectorError(INVALID_PARAMETERS)
        return path

    def _open(self, ctx: RequestContext) -> None:
        self._open_path(ctx, ctx.target or ctx.root)

    def _open_path(
        self,
        ctx: RequestContext,
        target: VirtualPath,
        tree: bool = False,
    ) -> None:
        """Describe a directory, or return the content of a file."""
        if not ctx.describer.perms_for(target).read:
            raise ConnectorError(ACCESS_DENIED)

        guessed = target.kind is PathKind.UNKNOWN
        if target.is_file():
            if target.exists() or not guessed:
                self._send_file(ctx, target)
                return
            # Dotted folder name taken for a file by the heuristic
            target = target.as_directory()
        if not target.exists():
            raise ConnectorError(DIRECTORY_NOT_FOUND)

        describer = ctx.describer
        ctx.response['cwd'] = describer.cwd_for(target)
        ctx.response['cdc'] = _compact(
            describer.cdc_for(child)
            for child in describer.visible_children(target)
        )
        if tree or _flag(ctx.params.get('tree')):
            ctx.response['tree'] = describer.root_tree()
        if _flag(ctx.params.get('init')):
            ctx.response['disabled'] = list(self._options.disabled_commands)
            ctx.response['params'] = {
                'dotFiles': self._options.allow_dot_files,
                'uplMaxSize': self._options.upload_max_size,
                'archives': [],
                'extract': [],
                'url': self._options.url,
            }

    def _ls(self, ctx: RequestContext) -> None:
        target = self._existing_directory(ctx.target)
        files = ctx.describer.visible_children(target, with_directories=False)
        ctx.response['list'] = [child.name for child in files]

    def _tree(self, ctx: RequestContext) -> None:
        target = self._existing_directory(ctx.target)
        ctx.response['tree'] = ctx.describer.tree_for(target)

    def _mkdir(self, ctx: RequestContext) -> None:
        target = self._writable_directory(ctx, ctx.target)
        name = ctx.params.get('name')
        if not self._options.name_validator(name):
            raise ConnectorError('Unable to create folder')

        directory = target.join(name, PathKind.DIRECTORY)
        if directory.exists() or not directory.mkdir():
            raise ConnectorError('Unable to create folder')

        logger.info('Created directory: %s', directory)
        ctx.response['added'] = [directory.identifier]
        self._open_path(ctx, target, tree=True)

    def _mkfile(self, ctx: RequestContext) -> None:
        target = self._writable_directory(ctx, ctx.target)
        name = ctx.params.get('name')
        if not self._options.name_validator(name):
            raise ConnectorError('Unable to create file')

        new_file = target.join(name, PathKind.FILE)
        if new_file.exists() or not new_file.touch():
            raise ConnectorError('Unable to create file')

        logger.info('Created file: %s', new_file)
        ctx.response['select'] = [new_file.identifier]
        self._open_path(ctx, target)

    def _rename(self, ctx: RequestContext) -> None:
        target = _require(ctx.target)
        name = ctx.params.get('name')
        if not self._options.name_validator(name):
            raise ConnectorError(f'Unable to rename {target.ftype}')

        perms = ctx.describer.perms_for(target)
        if perms.locked or not perms.write:
            raise ConnectorError(ACCESS_DENIED)
        if target.is_directory():
            raise _not_implemented_error(ctx.command)

        destination = target.parent.join(name, PathKind.FILE)
        if destination.exists():
            raise ConnectorError(
                f"Unable to rename {target.ftype}. '{name}' already exists",
            )
        if not target.rename(destination):
            raise ConnectorError(f'Unable to rename {target.ftype}')

        logger.info('Renamed %s -> %s', target, destination)
        ctx.response['added'] = [ctx.describer.cdc_for(destination)]
        ctx.response['removed'] = [target.identifier]
        if ctx.current is not None:
            self._open_path(ctx, ctx.current)

    def _upload(self, ctx: RequestContext) -> None:
        current = self._writable_directory(ctx, ctx.current)
        limit = self._options.upload_max_size_in_bytes

        # Validate the whole batch before writing anything
        uploads = []
        for upload in ctx.params.get('upload') or ():
            name = self._options.original_filename(upload)
            if not self._options.name_validator(name):
                raise ConnectorError('Unable to create file')
            if limit and getattr(upload, 'size', 0) > limit:
                raise ConnectorError(
                    f"File '{name}' exceeds the maximum allowed filesize",
                )
            uploads.append((current.join(name, PathKind.FILE), upload))

        select = []
        for destination, upload in uploads:
            if not destination.write(upload):
                raise ConnectorError('Unable to upload file')
            logger.info('Uploaded file: %s', destination)
            select.append(destination.identifier)

        if select:
            ctx.response['select'] = select
        self._open_path(ctx, current)

    def _paste(self, ctx: RequestContext) -> None:
        dst_identifier = ctx.params.get('dst')
        if not dst_identifier:
            raise ConnectorError(INVALID_PARAMETERS)
        dst = self._writable_directory(ctx, self._decode(ctx, dst_identifier))

        cut = _flag(ctx.params.get('cut'))
        error = 'Some files were not moved.' if cut else 'Some files were not copied.'

        for source in ctx.targets:
            perms = ctx.describer.perms_for(source)
            if not perms.read or (cut and (perms.locked or not perms.write)):
                raise ConnectorError(error, {source.name: ACCESS_DENIED})

        pairs = [
            (source, dst.join(source.name, _kind_of(source)))
            for source in ctx.targets
        ]
        collisions = {
            source.name: f"already exists in '{dst}'"
            for source, destination in pairs
            if destination.exists()
        }
        if collisions:
            raise ConnectorError('The target file already exists', collisions)

        adapter = ctx.root.adapter
        added = []
        removed = []
        for source, destination in pairs:
            if source.is_directory():
                ctx.fail_item(source.name, 'Directories cannot be pasted', error)
                continue
            if cut:
                pasted = adapter.move(source, destination)
            else:
                pasted = adapter.copy(source, destination)
            if not pasted:
                ctx.fail_item(source.name, 'Paste failed', error)
                continue
            added.append(ctx.describer.cdc_for(destination))
            if cut:
                removed.append(source.identifier)

        if added:
            ctx.response['added'] = added
        if removed:
            ctx.response['removed'] = removed

    def _rm(self, ctx: RequestContext) -> None:
        if not ctx.targets:
            raise ConnectorError('No files were selected for removal')

        removed = []
        for target in ctx.targets:
            removed_ids, _ = self._remove(ctx, target)
            removed.extend(removed_ids)

        if removed:
            ctx.response['removed'] = removed
        if ctx.current is not None:
            self._open_path(ctx, ctx.current)

    def _remove(
        self,
        ctx: RequestContext,
        target: VirtualPath,
    ) -> tuple[list[str], bool]:
        """Remove a node, children first.

        Returns:
            Identifiers of removed nodes and whether the node itself
            was removed. A directory stays when something below it does.
        """
        perms = ctx.describer.perms_for(target)
        if perms.locked or not perms.write:
            ctx.fail_item(target.name, ACCESS_DENIED, _REMOVE_FAILED)
            return [], False

        removed = []
        complete = True
        if target.is_directory():
            for child in target.children():
                child_removed, child_complete = self._remove(ctx, child)
                removed.extend(child_removed)
                complete = complete and child_complete
        if not complete:
            return removed, False

        if not target.unlink():
            ctx.fail_item(target.name, 'Remove failed', _REMOVE_FAILED)
            return removed, False
        logger.info('Removed: %s', target)
        removed.append(target.identifier)

        if self._options.thumbs and target.is_file():
            thumbnail = ctx.describer.thumbnail_for(target)
            if thumbnail.exists() and thumbnail.unlink():
                removed.append(thumbnail.identifier)
        return removed, True

    def _get(self, ctx: RequestContext) -> None:
        target = _require(ctx.target)
        if not ctx.describer.perms_for(target).read:
            raise ConnectorError(ACCESS_DENIED)
        ctx.response['content'] = target.read().decode('utf-8', 'replace')

    def _file(self, ctx: RequestContext) -> None:
        target = _require(ctx.target)
        if not ctx.describer.perms_for(target).read:
            raise ConnectorError(ACCESS_DENIED)
        self._send_file(ctx, target)

    def _put(self, ctx: RequestContext) -> None:
        target = _require(ctx.target)
        perms = ctx.describer.perms_for(target)
        if not (perms.read and perms.write):
            raise ConnectorError(ACCESS_DENIED)

        content = ctx.params.get('content') or ''
        if isinstance(content, str):
            content = content.encode('utf-8')
        if not target.write(content):
            raise ConnectorError('Unable to save file')
        ctx.response['changed'] = [ctx.describer.cdc_for(target)]

    def _ping(self, ctx: RequestContext) -> None:
        ctx.headers['Connection'] = 'Close'

    def _tmb(self, ctx: RequestContext) -> None:
        image_handler = self._options.image_handler
        if image_handler is None or not self._options.thumbs:
            raise _not_implemented_error(ctx.command)

        current = self._existing_directory(ctx.current)
        describer = ctx.describer
        size = self._options.thumbs_size
        images = {}
        ctx.response['current'] = current.identifier
        for image in current.files():
            if not is_image(describer.mime_for(image)):
                continue
            if len(images) >= self._options.thumbs_at_once:
                ctx.response['tmb'] = True
                break
            thumbnail = describer.thumbnail_for(image)
            if thumbnail.exists():
                continue
            image_handler.thumbnail(
                self._options.public_url(image.file_key),
                thumbnail,
                width=size,
                height=size,
            )
            images[image.identifier] = self._options.public_url(
                thumbnail.file_key,
            )
        ctx.response['images'] = images

    def _not_implemented(self, ctx: RequestContext) -> None:
        raise _not_implemented_error(ctx.command)

    def _send_file(self, ctx: RequestContext, target: VirtualPath) -> None:
        ctx.response['file_data'] = target.read()
        ctx.response['mime_type'] = ctx.describer.mime_for(target)
        ctx.response['disposition'] = 'attachment'
        ctx.response['filename'] = target.name

    def _existing_directory(self, path: VirtualPath | None) -> VirtualPath:
        path = _require(path).as_directory()
        if not path.exists():
            raise ConnectorError(DIRECTORY_NOT_FOUND)
        return path

    def _writable_directory(
        self,
        ctx: RequestContext,
        path: VirtualPath | None,
    ) -> VirtualPath:
        path = self._existing_directory(path)
        if not ctx.describer.perms_for(path).write:
            raise ConnectorError(ACCESS_DENIED)
        return path


def _compact(descriptors: Iterable[dict[str, Any] | None]) -> list[dict[str, Any]]:
    return [descriptor for descriptor in descriptors if descriptor is not None]
