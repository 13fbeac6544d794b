"""Select the latest Hyper Protect base image from an image listing."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from aumai_hpcontract.errors import (
    EmptyParameterError,
    InvalidInputError,
    NoMatchingVersionError,
)
from aumai_hpcontract.models import ImageCandidate, ImageVersion
from aumai_hpcontract.versions import Constraint, resolve_latest

logger = logging.getLogger(__name__)

HYPER_PROTECT_OS = re.compile(r"^hyper-protect-[\w-]+-s390x-hpcr$")
HYPER_PROTECT_NAME = re.compile(
    r"^ibm-hyper-protect-container-runtime-(\d+)-(\d+)-s390x-(\d+)$"
)


def is_candidate_image(image: ImageCandidate) -> bool:
    """True for public, available s390x Hyper Protect runtime images."""
    return (
        image.architecture == "s390x"
        and image.status == "available"
        and image.visibility == "public"
        and HYPER_PROTECT_OS.match(image.os) is not None
        and HYPER_PROTECT_NAME.match(image.name) is not None
    )


def load_images(images: str | Sequence[Mapping[str, Any]]) -> list[ImageCandidate]:
    """Parse an image listing into normalised :class:`ImageCandidate` items.

    Accepts the terraform shape (flat ``architecture``/``os``/``checksum``)
    and the CLI/API shape (``operating_system`` object or list and
    ``file.checksums.sha256``).
    """
    if isinstance(images, str):
        if not images.strip():
            raise EmptyParameterError("image JSON data")
        try:
            images = json.loads(images)
        except json.JSONDecodeError as exc:
            raise InvalidInputError(f"failed to parse image JSON - {exc}") from exc
    if not isinstance(images, Sequence) or isinstance(images, str):
        raise InvalidInputError("image JSON data must be a list of images")
    try:
        return [ImageCandidate.model_validate(item).normalized() for item in images]
    except ValidationError as exc:
        raise InvalidInputError(f"invalid image entry - {exc}") from exc


def image_version(image: ImageCandidate) -> ImageVersion:
    match = HYPER_PROTECT_NAME.match(image.name)
    if match is None:
        raise InvalidInputError(f"{image.name!r} is not a Hyper Protect image name")
    major, minor, patch = (int(part) for part in match.groups())
    return ImageVersion(
        id=image.id,
        name=image.name,
        checksum=image.checksum,
        version=f"{major}.{minor}.{patch}",
    )


def pick_latest_image(
    images: Sequence[ImageVersion], constraint: str | Constraint | None = None
) -> ImageVersion:
    """Return the highest-versioned image satisfying *constraint*.

    Images sharing a version collapse onto the last one listed.
    """
    if not images:
        raise NoMatchingVersionError("no Hyper Protect image matching version found")
    by_version = {image.version: image for image in images}
    try:
        _, selected = resolve_latest(by_version, constraint)
    except NoMatchingVersionError as exc:
        raise NoMatchingVersionError(
            f"no Hyper Protect image matching version found - {exc}"
        ) from exc
    return selected


def select_image(
    images: str | Sequence[Mapping[str, Any]], constraint: str | Constraint | None = None
) -> ImageVersion:
    """Pick the latest eligible Hyper Protect image from a raw image listing."""
    candidates = [image for image in load_images(images) if is_candidate_image(image)]
    logger.debug("%d Hyper Protect image candidate(s) found", len(candidates))
    selected = pick_latest_image([image_version(image) for image in candidates], constraint)
    logger.info("selected image %s (version %s)", selected.name, selected.version)
    return selected


__all__ = [
    "HYPER_PROTECT_NAME",
    "HYPER_PROTECT_OS",
    "image_version",
    "is_candidate_image",
    "load_images",
    "pick_latest_image",
    "select_image",
]
