from typing import Any, Dict, Optional

from app.modules.moderation.models import ContentType
from app.modules.moderation.scanner import ContentScanner, default_scanner
from app.modules.moderation.schemas import (
    CommentContent,
    ModeratedContent,
    PostContent,
    ProfileContent,
    ScanResult,
)

def scan_profile(profile: ProfileContent, scanner: Optional[ContentScanner] = None) -> ScanResult:
    """
    Scan username, full name and bio separately.
    The first flagged field in that order decides the outcome, even if a
    later field scores higher.
    """
    scanner = scanner or default_scanner

    username_result = scanner.scan(profile.username)
    full_name_result = scanner.scan(profile.full_name) if profile.full_name else None
    bio_result = scanner.scan(profile.bio) if profile.bio else None

    results = [r for r in (username_result, full_name_result, bio_result) if r is not None]
    flagged = next((r for r in results if r.flagged), None)
    if flagged is None:
        return ScanResult(flagged=False)

    return ScanResult(
        flagged=True,
        flag_type=flagged.flag_type,
        confidence_score=flagged.confidence_score,
        details={
            "username": username_result.model_dump(mode="json"),
            "full_name": full_name_result.model_dump(mode="json") if full_name_result else None,
            "bio": bio_result.model_dump(mode="json") if bio_result else None,
        },
    )

def scan_post(post: PostContent, scanner: Optional[ContentScanner] = None) -> ScanResult:
    # TODO: media is not inspected; image_url/video_url need a vision classifier
    return (scanner or default_scanner).scan(post.content)

def scan_comment(comment: CommentContent, scanner: Optional[ContentScanner] = None) -> ScanResult:
    return (scanner or default_scanner).scan(comment.content)

def classify(content: ModeratedContent, scanner: Optional[ContentScanner] = None) -> ScanResult:
    if isinstance(content, ProfileContent):
        return scan_profile(content, scanner)
    elif isinstance(content, PostContent):
        return scan_post(content, scanner)
    elif isinstance(content, CommentContent):
        return scan_comment(content, scanner)
    raise TypeError(f"Unsupported content payload: {type(content).__name__}")

# Scan request tags that map onto a flaggable content type ("text" has none)
SCAN_CONTENT_TYPES = {
    "user_profile": ContentType.PROFILE,
    "post": ContentType.POST,
    "comment": ContentType.COMMENT,
}

_PAYLOAD_MODELS = {
    ContentType.PROFILE: ProfileContent,
    ContentType.POST: PostContent,
    ContentType.COMMENT: CommentContent,
}

def parse_content(content_type: ContentType, payload: Dict[str, Any]) -> ModeratedContent:
    """Build the typed payload for a content type from a raw request body."""
    model = _PAYLOAD_MODELS.get(content_type)
    if model is None:
        raise ValueError(f"No classifier for content type {content_type.value}")
    return model.model_validate(payload)
