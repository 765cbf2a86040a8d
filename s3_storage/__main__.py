"""Command line entry point for the storage helpers."""
from __future__ import annotations

import argparse
from dataclasses import replace
import logging
import re
import sys
from typing import Callable, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from .formatting import format_listing_row, load_package_info, parse_metadata_pairs
from .profiles import ConnectionProfile, ProfileStorage
from .serialization import SerializationFormat
from .services import ObjectNotFoundError
from .settings import DEFAULT_REGION, ClientConfiguration, ConfigurationError
from .storage import SimpleStorageService

LOGGER = logging.getLogger("s3_storage")


def build_parser() -> argparse.ArgumentParser:
    info = load_package_info()
    parser = argparse.ArgumentParser(prog="s3-storage", description=info.summary)
    parser.add_argument("--version", action="version", version=f"%(prog)s {info.version or 'dev'}")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")
    parser.add_argument("--profile", help="Saved connection profile to use")
    parser.add_argument("--endpoint-url", help="S3-compatible endpoint URL")
    parser.add_argument("--region", help="Region name")
    parser.add_argument("--format", choices=[fmt.value for fmt in SerializationFormat], help="Document format")
    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="List objects below a prefix")
    ls.add_argument("path")
    ls.add_argument("--flat", action="store_true", help="Do not descend into sub-prefixes")
    ls.add_argument("--delimiter", default=None)
    ls.set_defaults(handler=_cmd_ls)

    find = commands.add_parser("find", help="Find objects by key pattern or metadata")
    find.add_argument("path")
    criteria = find.add_mutually_exclusive_group(required=True)
    criteria.add_argument("--pattern", help="Case-insensitive regular expression for keys")
    criteria.add_argument("--meta", action="append", metavar="KEY=VALUE", help="Required metadata entry")
    find.add_argument("--first", action="store_true", help="Stop after the first match")
    find.set_defaults(handler=_cmd_find)

    cat = commands.add_parser("cat", help="Print an object's content")
    cat.add_argument("path")
    cat.set_defaults(handler=_cmd_cat)

    put = commands.add_parser("put", help="Upload a local file, directory or literal text")
    put.add_argument("path")
    put.add_argument("source")
    put.add_argument("--meta", action="append", metavar="KEY=VALUE")
    put.add_argument("--acl", default=None)
    put.set_defaults(handler=_cmd_put)

    get = commands.add_parser("get", help="Download everything below a path into a directory")
    get.add_argument("path")
    get.add_argument("destination")
    get.set_defaults(handler=_cmd_get)

    cp = commands.add_parser("cp", help="Copy an object")
    cp.add_argument("source")
    cp.add_argument("target")
    cp.set_defaults(handler=_cmd_cp)

    rm = commands.add_parser("rm", help="Delete an object if it exists")
    rm.add_argument("path")
    rm.set_defaults(handler=_cmd_rm)

    url = commands.add_parser("url", help="Print a presigned download URL")
    url.add_argument("path")
    url.add_argument("--expires", type=int, default=3600)
    url.set_defaults(handler=_cmd_url)

    exists = commands.add_parser("exists", help="Exit 0 when the object exists")
    exists.add_argument("path")
    exists.set_defaults(handler=_cmd_exists)

    profile = commands.add_parser("profile", help="Manage saved connection profiles")
    profile_commands = profile.add_subparsers(dest="profile_command", required=True)
    profile_commands.add_parser("list").set_defaults(handler=_cmd_profile_list)
    add = profile_commands.add_parser("add")
    add.add_argument("name")
    add.add_argument("--access-key-id", required=True)
    add.add_argument("--secret-access-key", required=True)
    add.add_argument("--kms-key-id", default="")
    add.set_defaults(handler=_cmd_profile_add)
    remove = profile_commands.add_parser("remove")
    remove.add_argument("name")
    remove.set_defaults(handler=_cmd_profile_remove)
    return parser


def build_configuration(args: argparse.Namespace, storage: ProfileStorage) -> ClientConfiguration:
    if args.profile:
        configuration = storage.get(args.profile).to_configuration()
    else:
        configuration = ClientConfiguration.from_environment()
    overrides = {}
    if args.endpoint_url:
        overrides["endpoint_url"] = args.endpoint_url
    if args.region:
        overrides["region"] = args.region
    if args.format:
        overrides["serialization_format"] = SerializationFormat.parse(args.format)
    return replace(configuration, **overrides) if overrides else configuration


def _cmd_ls(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    delimiter = args.delimiter or ("/" if args.flat else None)
    for listed in service.list_objects(args.path, delimiter, recursive=not args.flat):
        print(format_listing_row(listed), file=out)
    return 0


def _cmd_find(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    criteria = args.pattern if args.pattern is not None else parse_metadata_pairs(args.meta)
    if args.first:
        match = service.find_object(args.path, criteria)
        matches = [match] if match is not None else []
    else:
        matches = service.find_objects(args.path, criteria)
    for listed in matches:
        print(format_listing_row(listed), file=out)
    return 0 if matches else 1


def _cmd_cat(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    with service.download_stream(args.path) as stream:
        print(stream.read().decode("utf-8", errors="replace"), end="", file=out)
    return 0


def _cmd_put(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    service.upload(args.path, args.source, metadata=parse_metadata_pairs(args.meta), acl=args.acl)
    return 0


def _cmd_get(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    for local_path in service.download_directory(args.path, args.destination):
        print(local_path, file=out)
    return 0


def _cmd_cp(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    return 0 if service.copy(args.source, args.target) is not None else 1


def _cmd_rm(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    service.delete_if_exists(args.path)
    return 0


def _cmd_url(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    signed = service.object_url(args.path, expires_in=args.expires)
    if signed is None:
        return 1
    print(signed, file=out)
    return 0


def _cmd_exists(service: SimpleStorageService, args: argparse.Namespace, out) -> int:
    return 0 if service.object_exists(args.path) else 1


def _cmd_profile_list(storage: ProfileStorage, args: argparse.Namespace, out) -> int:
    for profile in storage.load():
        print(f"{profile.name}\t{profile.region}\t{profile.endpoint_url or '-'}", file=out)
    return 0


def _cmd_profile_add(storage: ProfileStorage, args: argparse.Namespace, out) -> int:
    storage.upsert(
        ConnectionProfile(
            name=args.name,
            access_key_id=args.access_key_id,
            secret_access_key=args.secret_access_key,
            region=args.region or DEFAULT_REGION,
            endpoint_url=args.endpoint_url or "",
            kms_key_id=args.kms_key_id,
            serialization_format=args.format or SerializationFormat.JSON.value,
        )
    )
    return 0


def _cmd_profile_remove(storage: ProfileStorage, args: argparse.Namespace, out) -> int:
    storage.delete(args.name)
    return 0


def main(
    argv: Sequence[str] | None = None,
    *,
    storage: ProfileStorage | None = None,
    service_factory: Callable[[ClientConfiguration], SimpleStorageService] = SimpleStorageService,
    out=None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    out = out or sys.stdout
    logging.basicConfig(
        level=logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    storage = storage or ProfileStorage()
    try:
        if args.command == "profile":
            return args.handler(storage, args, out)
        service = service_factory(build_configuration(args, storage))
        return args.handler(service, args, out)
    except (BotoCoreError, ClientError) as exc:
        LOGGER.exception("Storage request failed")
        print(f"error: {exc}", file=sys.stderr)
    except (ObjectNotFoundError, ConfigurationError, ValueError, re.error) as exc:
        LOGGER.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
