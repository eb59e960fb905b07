"""
Image Gallery — Generated images stored with encrypted prompt and payload.

Each image row keeps its prompt and its image data as two independent
ciphertexts, so one damaged field does not hide the other. Model, size,
quality and timestamps stay in plaintext for listing and sorting.

All reads are scoped by owner: an image id alone never grants access.

Security Note:
    Never log prompts or image data. Only log image ids and owners.
"""
import uuid
import logging
from typing import Any, Mapping, Optional, Union

import orjson
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..conf import IMAGES_TABLE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from .crypto import EncryptionService
from .keys import MasterKeyNotInitialized
from .results import Result
from .storage import DatabaseGetter, now_ms

logger = logging.getLogger("webui.vault")

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_IMAGE = f"""
INSERT INTO {IMAGES_TABLE} (id, user_id, prompt, model, image_data, size, quality, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

_COUNT_IMAGES = f"SELECT COUNT(*) AS total FROM {IMAGES_TABLE} WHERE user_id = ?"

# rowid keeps insertion order among images created in the same millisecond
_SELECT_PAGE = f"""
SELECT id, user_id, prompt, model, image_data, size, quality, created_at
FROM {IMAGES_TABLE}
WHERE user_id = ?
ORDER BY created_at DESC, rowid DESC
LIMIT ? OFFSET ?
"""

_SELECT_IMAGE = f"""
SELECT id, user_id, prompt, model, image_data, size, quality, created_at
FROM {IMAGES_TABLE}
WHERE id = ? AND user_id = ?
"""

_DELETE_IMAGE = f"DELETE FROM {IMAGES_TABLE} WHERE id = ? AND user_id = ?"

_DELETE_ALL_IMAGES = f"DELETE FROM {IMAGES_TABLE} WHERE user_id = ?"


def _as_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class NewImage(BaseModel):
    """Parameters of a freshly generated image."""

    prompt: str
    model: str
    image_data: str
    size: Optional[str] = None
    quality: Optional[str] = None

    @field_validator("size", "quality")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class GeneratedImage(BaseModel):
    """An image as handed to the caller.

    ``prompt`` and ``image_data`` are None when the stored ciphertext could
    not be decrypted (for instance after the master key was replaced); an
    empty string is a real, empty value.
    """

    id: str
    owner_id: str = Field(serialization_alias="userId")
    prompt: Optional[str]
    model: str
    image_data: Optional[str] = Field(serialization_alias="imageData")
    size: Optional[str] = None
    quality: Optional[str] = None
    created_at: int = Field(serialization_alias="createdAt")

    @property
    def is_complete(self) -> bool:
        return self.prompt is not None and self.image_data is not None

    def to_json(self) -> bytes:
        return orjson.dumps(self.model_dump(by_alias=True))


class ImagePage(BaseModel):
    """One page of a gallery listing."""

    images: list[GeneratedImage] = Field(default_factory=list)
    total: int = 0

    def to_json(self) -> bytes:
        return orjson.dumps(self.model_dump(by_alias=True))


class GalleryStore:
    """Per-owner store of generated images.

    Every operation returns a :class:`Result` and never raises because of
    the database or of an undecryptable row.
    """

    def __init__(
        self,
        database: DatabaseGetter,
        encryption: EncryptionService,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
        clock=now_ms,
    ):
        self._database = database
        self._encryption = encryption
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._clock = clock

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    def _decrypt_field(self, row: Mapping[str, Any], column: str) -> Optional[str]:
        result = self._encryption.decrypt(row[column])
        if not result:
            logger.warning(
                "Could not decrypt %s of image %s (user: %s)",
                column, row["id"], row["user_id"],
            )
        return result.unwrap_or(None)

    def _from_row(self, row: Mapping[str, Any]) -> GeneratedImage:
        return GeneratedImage(
            id=row["id"],
            owner_id=row["user_id"],
            prompt=self._decrypt_field(row, "prompt"),
            model=row["model"],
            image_data=self._decrypt_field(row, "image_data"),
            size=row["size"] or None,
            quality=row["quality"] or None,
            created_at=row["created_at"],
        )

    def _page_bounds(self, limit: Any, offset: Any) -> tuple[int, int]:
        """Coerce raw limit/offset (ints or query-string values) to a page."""
        limit = _as_int(limit, self._default_page_size)
        if limit < 1:
            limit = self._default_page_size
        limit = min(limit, self._max_page_size)
        offset = _as_int(offset, 0)
        if offset < 0:
            offset = 0
        return limit, offset

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def save(
        self,
        owner_id: str,
        params: Union[NewImage, Mapping[str, Any]],
    ) -> Result[GeneratedImage]:
        """Encrypt and store a generated image.

        Returns:
            OK with the stored image (plaintext fields filled in from
            ``params``), UNAVAILABLE or FAILED otherwise.
        """
        db = self._database()
        if db is None:
            logger.error("Database not available for saving image")
            return Result.unavailable()
        try:
            new = params if isinstance(params, NewImage) else NewImage.model_validate(params)
        except ValidationError as err:
            logger.error("Invalid image for user %s: %s", owner_id, err.error_count())
            return Result.failed()
        try:
            image_id = str(uuid.uuid4())
            created_at = self._clock()
            encrypted_image = self._encryption.encrypt(new.image_data)
            encrypted_prompt = self._encryption.encrypt(new.prompt)
            db.prepare(_INSERT_IMAGE).run(
                image_id,
                owner_id,
                encrypted_prompt,
                new.model,
                encrypted_image,
                new.size,
                new.quality,
                created_at,
            )
        except MasterKeyNotInitialized:
            raise
        except Exception as err:
            logger.error("Error saving image to gallery for user %s: %s", owner_id, err)
            return Result.failed()

        logger.info("Image %s saved to gallery (user: %s)", image_id, owner_id)
        return Result.success(GeneratedImage(
            id=image_id,
            owner_id=owner_id,
            prompt=new.prompt,
            model=new.model,
            image_data=new.image_data,
            size=new.size,
            quality=new.quality,
            created_at=created_at,
        ))

    def list(
        self,
        owner_id: str,
        limit: Union[int, str, None] = None,
        offset: Union[int, str, None] = 0,
    ) -> Result[ImagePage]:
        """Return the owner's images, newest first.

        ``total`` counts every image of the owner, independent of the page.
        The result value is always a page, empty when storage failed.
        ``limit`` and ``offset`` may be raw query-string values; anything
        that is not a positive integer falls back to the defaults.
        """
        db = self._database()
        if db is None:
            return Result.unavailable(ImagePage())
        limit, offset = self._page_bounds(limit, offset)
        try:
            count = db.prepare(_COUNT_IMAGES).get(owner_id)
            rows = db.prepare(_SELECT_PAGE).all(owner_id, limit, offset)
            images = [self._from_row(row) for row in rows]
        except MasterKeyNotInitialized:
            raise
        except Exception as err:
            logger.error("Error getting images from gallery for user %s: %s", owner_id, err)
            return Result.failed(ImagePage())
        incomplete = sum(1 for img in images if not img.is_complete)
        if incomplete:
            logger.warning(
                "%d of %d images on page for user %s could not be fully decrypted",
                incomplete, len(images), owner_id,
            )
        return Result.success(ImagePage(
            images=images,
            total=count["total"] if count else 0,
        ))

    def get(self, image_id: str, owner_id: str) -> Result[GeneratedImage]:
        """Fetch one image; both id and owner must match."""
        db = self._database()
        if db is None:
            return Result.unavailable()
        try:
            row = db.prepare(_SELECT_IMAGE).get(image_id, owner_id)
            if not row:
                return Result.not_found()
            return Result.success(self._from_row(row))
        except MasterKeyNotInitialized:
            raise
        except Exception as err:
            logger.error("Error getting image %s from gallery: %s", image_id, err)
            return Result.failed()

    def delete_one(self, image_id: str, owner_id: str) -> Result[None]:
        """Delete one image; OK only if a row of this owner was removed."""
        db = self._database()
        if db is None:
            return Result.unavailable()
        try:
            result = db.prepare(_DELETE_IMAGE).run(image_id, owner_id)
        except Exception as err:
            logger.error("Error deleting image %s from gallery: %s", image_id, err)
            return Result.failed()
        if result.changes > 0:
            logger.info("Image %s deleted (user: %s)", image_id, owner_id)
            return Result.success()
        return Result.not_found()

    def delete_all(self, owner_id: str) -> Result[int]:
        """Delete every image of an owner; zero rows removed is still OK."""
        db = self._database()
        if db is None:
            return Result.unavailable()
        try:
            result = db.prepare(_DELETE_ALL_IMAGES).run(owner_id)
        except Exception as err:
            logger.error("Error deleting all images for user %s: %s", owner_id, err)
            return Result.failed()
        logger.info("All gallery images deleted for user %s (%d)", owner_id, result.changes)
        return Result.success(result.changes)
