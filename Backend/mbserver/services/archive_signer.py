import hashlib
import logging
import subprocess
import tarfile
from pathlib import Path
from typing import Iterable, List, Optional

from mbserver.core.exceptions import ExternalToolFailure

logger = logging.getLogger(__name__)

CHECKSUM_FILES = {"MD5SUMS": "md5", "SHA256SUMS": "sha256"}


class ArchiveSigner:
    """
    Archiving, checksumming, signing and encryption of export artifacts.
    Every method raises ExternalToolFailure when the underlying tool fails.
    """

    def create_archive(self, archive_path: Path, base_dir: Path, members: Iterable[str]) -> Path:
        raise NotImplementedError

    def write_checksums(self, directory: Path, filenames: List[str]) -> List[Path]:
        raise NotImplementedError

    def sign(self, path: Path) -> Path:
        raise NotImplementedError

    def encrypt(self, path: Path, recipient: str) -> Path:
        raise NotImplementedError

    def run_callback(self, command: str, packet: Path) -> None:
        raise NotImplementedError


def _file_digest(path: Path, algorithm: str) -> str:
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


class GpgArchiveSigner(ArchiveSigner):
    """tar+bzip2 archives and checksum files in-process, GPG through the gpg binary."""

    def __init__(self, sign_key: Optional[str] = None, gpg_binary: str = "gpg"):
        self.sign_key = sign_key
        self.gpg_binary = gpg_binary

    def create_archive(self, archive_path: Path, base_dir: Path, members: Iterable[str]) -> Path:
        try:
            with tarfile.open(archive_path, "w:bz2") as tar:
                for member in members:
                    tar.add(base_dir / member, arcname=member)
        except (OSError, tarfile.TarError) as e:
            raise ExternalToolFailure("tar", f"{archive_path}: {e}")
        logger.info(f"Created {archive_path}")
        return archive_path

    def write_checksums(self, directory: Path, filenames: List[str]) -> List[Path]:
        written = []
        for checksum_file, algorithm in CHECKSUM_FILES.items():
            path = directory / checksum_file
            try:
                lines = [f"{_file_digest(directory / name, algorithm)} *{name}\n" for name in sorted(filenames)]
                path.write_text("".join(lines), encoding="utf-8")
            except OSError as e:
                raise ExternalToolFailure(algorithm, str(e))
            written.append(path)
        return written

    def _gpg(self, args: List[str]) -> None:
        try:
            subprocess.run(
                [self.gpg_binary, "--batch", "--yes", *args],
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            raise ExternalToolFailure("gpg", f"{self.gpg_binary} not found")
        except subprocess.CalledProcessError as e:
            raise ExternalToolFailure("gpg", e.stderr.strip() or f"exit status {e.returncode}")

    def sign(self, path: Path) -> Path:
        signature = path.with_name(path.name + ".asc")
        args = ["--armor", "--detach-sign", "--output", str(signature)]
        if self.sign_key:
            args += ["--local-user", self.sign_key]
        self._gpg([*args, str(path)])
        logger.info(f"Signed {path.name}")
        return signature

    def encrypt(self, path: Path, recipient: str) -> Path:
        encrypted = path.with_name(path.name + ".gpg")
        self._gpg(["--encrypt", "--recipient", recipient, "--output", str(encrypted), str(path)])
        logger.info(f"Encrypted {path.name} for {recipient}")
        return encrypted

    def run_callback(self, command: str, packet: Path) -> None:
        try:
            subprocess.run([command, str(packet)], check=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise ExternalToolFailure(command, str(e))
