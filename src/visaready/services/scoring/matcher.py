"""
Format matching between uploaded files and requirement rules.
"""

from typing import Iterable

from ...core.models import RequirementRule, UploadedFileDescriptor


def extension_of(filename: str) -> str:
    """Lowercased text after the last '.', or "" for a name without one."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def mime_subtype_of(mime_type: str) -> str:
    """Lowercased part of a 'type/subtype' content type after the '/'."""
    if "/" not in mime_type:
        return ""
    return mime_type.split("/", 1)[1].strip().lower()


class DocumentMatcher:
    """
    Decides whether an uploaded file satisfies a requirement's accepted formats.
    """

    def matches(self, file: UploadedFileDescriptor, rule: RequirementRule) -> bool:
        if not rule.accepted_formats:
            return True

        return (
            extension_of(file.original_name) in rule.accepted_formats
            or mime_subtype_of(file.mime_type) in rule.accepted_formats
        )

    def any_match(self, files: Iterable[UploadedFileDescriptor], rule: RequirementRule) -> bool:
        return any(self.matches(file, rule) for file in files)
