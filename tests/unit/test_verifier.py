"""Unit tests for installer integrity verification and the proceed/abort policy."""

from __future__ import annotations

import logging

import pytest

from vivbuild.core.verifier import (
    DigestMismatchError,
    MissingArtifactError,
    MissingDigestFileError,
    VerificationIOError,
    enforce,
    read_candidates,
    verify,
)
from vivbuild.models.verification import VerificationMode, VerificationStatus


class TestVerify:
    def test_hello_is_verified(self, hello_artifact, make_digest_file, hello_sha512):
        digests = make_digest_file(f"{hello_sha512}  hello.tar\n")
        result = verify(hello_artifact, digests)
        assert result.status == VerificationStatus.VERIFIED
        assert result.computed_digest == hello_sha512
        assert result.matched_digest == hello_sha512
        assert result.size_bytes == 5
        assert result.passed

    def test_match_among_several_candidates(self, hello_artifact, make_digest_file, hello_sha512):
        text = "\n".join([
            "# Vivado 2025.1 digests",
            "MD5: d41d8cd98f00b204e9800998ecf8427e",
            f"SHA512: {'e' * 128}",
            f"SHA512: {hello_sha512.upper()}",
        ])
        result = verify(hello_artifact, make_digest_file(text))
        assert result.status == VerificationStatus.VERIFIED
        assert result.candidates == ["e" * 128, hello_sha512]

    def test_unrelated_candidate_is_mismatch(self, hello_artifact, make_digest_file, hello_sha512):
        result = verify(hello_artifact, make_digest_file("f" * 128))
        assert result.status == VerificationStatus.MISMATCH
        assert result.computed_digest == hello_sha512
        assert result.matched_digest is None
        assert result.candidates == ["f" * 128]
        assert not result.passed

    def test_digest_file_without_candidates_is_mismatch(self, hello_artifact, make_digest_file):
        result = verify(hello_artifact, make_digest_file("no hashes here\n"))
        assert result.status == VerificationStatus.MISMATCH
        assert result.candidates == []

    def test_mismatch_logs_every_candidate(self, hello_artifact, make_digest_file, caplog):
        digests = make_digest_file(f"{'a' * 128}\n{'b' * 128}\n")
        with caplog.at_level(logging.ERROR, logger="vivbuild.core.verifier"):
            verify(hello_artifact, digests)
        assert "a" * 128 in caplog.text
        assert "b" * 128 in caplog.text

    def test_missing_digest_file_is_no_reference(self, hello_artifact, tmp_dir, hello_sha512):
        result = verify(hello_artifact, tmp_dir / "absent.digests")
        assert result.status == VerificationStatus.NO_REFERENCE
        assert result.computed_digest == hello_sha512
        assert not result.passed

    def test_none_digest_path_is_no_reference(self, hello_artifact):
        assert verify(hello_artifact, None).status == VerificationStatus.NO_REFERENCE

    def test_skip_does_not_hash(self, hello_artifact, make_digest_file):
        calls: list[int] = []
        result = verify(
            hello_artifact,
            make_digest_file("f" * 128),
            VerificationMode.SKIP,
            progress=calls.append,
        )
        assert result.status == VerificationStatus.SKIPPED
        assert result.computed_digest is None
        assert calls == []
        assert result.passed

    def test_compute_only_ignores_digest_file(self, hello_artifact, make_digest_file, hello_sha512):
        result = verify(hello_artifact, make_digest_file("f" * 128), VerificationMode.COMPUTE_ONLY)
        assert result.status == VerificationStatus.COMPUTED
        assert result.computed_digest == hello_sha512
        assert result.candidates == []

    def test_progress_callback(self, hello_artifact, make_digest_file, hello_sha512):
        seen: list[int] = []
        verify(hello_artifact, make_digest_file(hello_sha512), chunk_size=2, progress=seen.append)
        assert sum(seen) == 5

    @pytest.mark.parametrize(
        ("digest_text", "expected"),
        [
            (None, VerificationStatus.NO_REFERENCE),
            ("f" * 128, VerificationStatus.MISMATCH),
            ("HELLO", VerificationStatus.VERIFIED),
        ],
    )
    def test_repeated_verification_is_stable(
        self, hello_artifact, make_digest_file, tmp_dir, hello_sha512, digest_text, expected
    ):
        if digest_text is None:
            digests = tmp_dir / "absent.digests"
        else:
            digests = make_digest_file(digest_text.replace("HELLO", hello_sha512))
        first = verify(hello_artifact, digests)
        second = verify(hello_artifact, digests)
        assert first.status == expected
        assert first == second


class TestVerifyErrors:
    def test_missing_artifact(self, tmp_dir, make_digest_file):
        with pytest.raises(MissingArtifactError, match="not found"):
            verify(tmp_dir / "absent.tar", make_digest_file("f" * 128))

    def test_missing_artifact_even_when_skipping(self, tmp_dir):
        with pytest.raises(MissingArtifactError):
            verify(tmp_dir / "absent.tar", None, VerificationMode.SKIP)

    def test_empty_artifact(self, tmp_dir):
        empty = tmp_dir / "empty.tar"
        empty.touch()
        with pytest.raises(MissingArtifactError, match="is empty"):
            verify(empty, None)

    def test_directory_is_not_an_artifact(self, tmp_dir):
        with pytest.raises(MissingArtifactError, match="not a regular file"):
            verify(tmp_dir, None)

    def test_unreadable_digest_file(self, hello_artifact, tmp_dir):
        digest_dir = tmp_dir / "digests-as-dir"
        digest_dir.mkdir()
        with pytest.raises(VerificationIOError) as excinfo:
            verify(hello_artifact, digest_dir)
        assert isinstance(excinfo.value.cause, OSError)
        assert excinfo.value.path == digest_dir

    def test_permission_denied_on_artifact(self, hello_artifact, tmp_dir, deny_access):
        deny_access(hello_artifact)
        with pytest.raises(VerificationIOError) as excinfo:
            verify(hello_artifact, tmp_dir / "x.digests")
        assert isinstance(excinfo.value.cause, PermissionError)
        assert excinfo.value.path == hello_artifact

    def test_permission_denied_on_digest_file(self, hello_artifact, tmp_dir, deny_access):
        digests = tmp_dir / "locked" / "hello.tar.digests"
        deny_access(digests)
        with pytest.raises(VerificationIOError) as excinfo:
            verify(hello_artifact, digests)
        assert isinstance(excinfo.value.cause, PermissionError)
        assert excinfo.value.path == digests

    def test_hash_failure_is_io_error(self, hello_artifact, monkeypatch):
        def boom(*args, **kwargs):
            raise OSError(5, "Input/output error")

        monkeypatch.setattr("vivbuild.core.verifier.file_digest", boom)
        with pytest.raises(VerificationIOError, match="Input/output error"):
            verify(hello_artifact, None)


class TestReadCandidates:
    def test_absent_file(self, tmp_dir):
        assert read_candidates(tmp_dir / "absent.digests") is None

    def test_extracts_sha512_only(self, make_digest_file, hello_sha512):
        path = make_digest_file(f"sha256 {'c' * 64}\nsha512 {hello_sha512}\n")
        assert read_candidates(path) == [hello_sha512]


class TestEnforce:
    def test_verified_passes(self, hello_artifact, make_digest_file, hello_sha512):
        result = verify(hello_artifact, make_digest_file(hello_sha512))
        assert enforce(result, strict=True) is result

    def test_mismatch_always_raises(self, hello_artifact, make_digest_file):
        result = verify(hello_artifact, make_digest_file("f" * 128))
        with pytest.raises(DigestMismatchError) as excinfo:
            enforce(result)
        assert excinfo.value.result is result
        assert "matches none of 1" in str(excinfo.value)

    def test_no_reference_lenient(self, hello_artifact):
        result = verify(hello_artifact, None)
        assert enforce(result) is result

    def test_no_reference_strict(self, hello_artifact, tmp_dir):
        result = verify(hello_artifact, tmp_dir / "absent.digests")
        with pytest.raises(MissingDigestFileError, match="Strict verification"):
            enforce(result, strict=True)

    def test_skipped_and_computed_pass_strict(self, hello_artifact):
        for mode in (VerificationMode.SKIP, VerificationMode.COMPUTE_ONLY):
            result = verify(hello_artifact, None, mode)
            assert enforce(result, strict=True) is result
