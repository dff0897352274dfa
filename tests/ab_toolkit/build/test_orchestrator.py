from __future__ import annotations

import os
import zipfile
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from ab_toolkit.build import (
    ArchiveError,
    BuildIdentification,
    Builder,
    BuildTaskSet,
    BundleBuildError,
    ImageBuildError,
    ImagePushError,
    RegistryLoginError,
    TaskFailedError,
    UploadError,
    ZipArchiver,
)
from ab_toolkit.config import ConfigurationError
from ab_toolkit.credentials import AwsCredentials, CredentialError, CredentialSet
from ab_toolkit.process import CancelSignal, Process, ProcessExitError

pytestmark = pytest.mark.anyio

ACCOUNT = "123456789012"
REGION = "us-east-1"
REGISTRY = f"{ACCOUNT}.dkr.ecr.{REGION}.amazonaws.com"
BUCKET = f"artifacts-{ACCOUNT}-{REGION}"


class FakeCredentials:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.loads = 0

    async def load(self) -> CredentialSet:
        self.loads += 1
        if self.fail:
            raise CredentialError("identity", "failed to get AWS identity")
        return CredentialSet(
            aws=AwsCredentials("AKIA", f"secret-{self.loads}", "session"),
            github_token="ghs",
            account_id=ACCOUNT,
            region=REGION,
        )


class Recorder:
    """Stands in for both `run` and `pipe`, failing commands that match."""

    def __init__(self, fail: Callable[[Process], bool] = lambda p: False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, ...]] = []
        self.processes: list[Process] = []
        self.signals: list[CancelSignal | None] = []

    def _check(self, process: Process) -> None:
        if self.fail(process):
            raise ProcessExitError(process.command_line, 1)

    async def run(self, process: Process, cancel: CancelSignal | None = None) -> None:
        self.calls.append(tuple(process.argv))
        self.processes.append(process)
        self.signals.append(cancel)
        self._check(process)

    async def pipe(
        self, source: Process, sink: Process, cancel: CancelSignal | None = None
    ) -> None:
        self.calls.append((*source.argv, "|", *sink.argv))
        self.processes.extend([source, sink])
        self.signals.append(cancel)
        self._check(source)
        self._check(sink)


class FakeArchiver:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[
            tuple[Path, Path, Sequence[str] | None, Sequence[str] | None]
        ] = []

    async def __call__(self, archive, root, *, includes=None, excludes=None) -> None:
        self.calls.append((archive, root, includes, excludes))
        if self.error is not None:
            raise self.error


def argv_contains(*words: str) -> Callable[[Process], bool]:
    return lambda process: all(word in process.argv for word in words)


@pytest.fixture
def identification(tmp_path: Path) -> BuildIdentification:
    return BuildIdentification("acme/api", "abc123", tmp_path)


def make_builder(
    recorder: Recorder,
    *,
    credentials: FakeCredentials | None = None,
    archive: FakeArchiver | None = None,
    cancel: CancelSignal | None = None,
) -> Builder:
    return Builder(
        credentials=credentials or FakeCredentials(),
        run=recorder.run,
        pipe=recorder.pipe,
        archive=archive or FakeArchiver(),
        backend="docker",
        cancel=cancel,
    )


def image_commands(directory: Path) -> list[tuple[str, ...]]:
    tag = f"{REGISTRY}/acme/api"
    return [
        (
            "aws",
            "ecr",
            "get-login-password",
            "--region",
            REGION,
            "|",
            "docker",
            "login",
            "--username",
            "AWS",
            "--password-stdin",
            REGISTRY,
        ),
        (
            "docker",
            "build",
            "--build-arg",
            "AWS_ACCESS_KEY_ID",
            "--build-arg",
            "AWS_SECRET_ACCESS_KEY",
            "--build-arg",
            "AWS_SESSION_TOKEN",
            "--build-arg",
            "GITHUB_ACCESS_TOKEN",
            "--tag",
            tag,
            "--file",
            str(directory / "Dockerfile"),
            str(directory / "."),
        ),
        ("docker", "push", tag),
    ]


class TestContainerImage:
    async def test_single_image(self, identification: BuildIdentification):
        recorder = Recorder()
        builds = BuildTaskSet.model_validate({"docker-images": [{}]})

        await make_builder(recorder).build_all(identification, builds)

        assert recorder.calls == image_commands(identification.directory)
        build = recorder.processes[2]
        assert build.cwd == identification.directory
        assert build.env["AWS_ACCESS_KEY_ID"] == "AKIA"

    async def test_login_failure(self, identification: BuildIdentification):
        recorder = Recorder(fail=argv_contains("login"))
        builds = BuildTaskSet.model_validate({"docker-images": [{}]})

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder).build_all(identification, builds)

        assert isinstance(exc_info.value.__cause__, RegistryLoginError)
        assert str(exc_info.value.__cause__) == "failed to log into ecr"
        assert len(recorder.calls) == 1

    async def test_build_failure(self, identification: BuildIdentification):
        recorder = Recorder(fail=argv_contains("build"))
        builds = BuildTaskSet.model_validate({"docker-images": [{}]})

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder).build_all(identification, builds)

        cause = exc_info.value.__cause__
        assert isinstance(cause, ImageBuildError)
        assert isinstance(cause.__cause__, ProcessExitError)
        assert [c[1] for c in recorder.calls] == ["ecr", "build"]

    async def test_push_failure(self, identification: BuildIdentification):
        recorder = Recorder(fail=argv_contains("push"))
        builds = BuildTaskSet.model_validate({"docker-images": [{}]})

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder).build_all(identification, builds)

        assert isinstance(exc_info.value.__cause__, ImagePushError)


class TestFunctionBundle:
    async def test_go_bundle(self, identification: BuildIdentification):
        recorder = Recorder()
        archiver = FakeArchiver()
        builds = BuildTaskSet.model_validate({"lambda-bundles": [{}]})

        await make_builder(recorder, archive=archiver).build_all(identification, builds)

        directory = identification.directory
        archive = directory / "abc123.zip"
        assert recorder.calls == [
            ("make", "build"),
            ("aws", "s3", "cp", str(archive), f"s3://{BUCKET}/acme/api/abc123.zip"),
        ]
        assert archiver.calls == [(archive, directory / "dist", None, None)]

        build = recorder.processes[0]
        assert build.cwd == directory
        assert build.env == {
            "AWS_ACCESS_KEY_ID": "AKIA",
            "AWS_SECRET_ACCESS_KEY": "secret-1",
            "AWS_SESSION_TOKEN": "session",
            "GITHUB_ACCESS_TOKEN": "ghs",
        }

    async def test_nodejs_bundle_keeps_dependencies(
        self, identification: BuildIdentification
    ):
        recorder = Recorder()
        archiver = FakeArchiver()
        builds = BuildTaskSet.model_validate(
            {
                "lambda-bundles": [
                    {
                        "runtime": "nodejs14.x",
                        "includes": ["src", "package.json"],
                        "excludes": ["*.test.js"],
                    }
                ]
            }
        )

        await make_builder(recorder, archive=archiver).build_all(identification, builds)

        directory = identification.directory
        assert recorder.calls[0] == ("npm", "ci")
        assert archiver.calls == [
            (
                directory / "abc123.zip",
                directory,
                ["src", "package.json", "node_modules"],
                ["*.test.js"],
            )
        ]

    async def test_nodejs_bundle_without_patterns(
        self, identification: BuildIdentification
    ):
        archiver = FakeArchiver()
        builds = BuildTaskSet.model_validate(
            {"lambda-bundles": [{"runtime": "nodejs14.x", "includes": [], "excludes": []}]}
        )

        await make_builder(Recorder(), archive=archiver).build_all(
            identification, builds
        )

        assert archiver.calls[0][2:] == (None, None)

    async def test_custom_command(self, identification: BuildIdentification):
        recorder = Recorder()
        builds = BuildTaskSet.model_validate(
            {"lambda-bundles": [{"cmd": "make  lambda"}]}
        )

        await make_builder(recorder).build_all(identification, builds)

        assert recorder.calls[0] == ("make", "lambda")

    async def test_build_command_failure(self, identification: BuildIdentification):
        recorder = Recorder(fail=argv_contains("make"))
        archiver = FakeArchiver()
        builds = BuildTaskSet.model_validate({"lambda-bundles": [{}]})

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder, archive=archiver).build_all(
                identification, builds
            )

        cause = exc_info.value.__cause__
        assert isinstance(cause, BundleBuildError)
        assert str(cause) == 'failed to run "make build"'
        assert archiver.calls == []

    @pytest.mark.parametrize(
        "error",
        [
            PermissionError(13, "Permission denied"),
            ValueError("ZIP does not support timestamps before 1980"),
            zipfile.BadZipFile("truncated"),
        ],
    )
    async def test_archive_failure(
        self, identification: BuildIdentification, error: Exception
    ):
        recorder = Recorder()
        builds = BuildTaskSet.model_validate({"lambda-bundles": [{}]})

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder, archive=FakeArchiver(error=error)).build_all(
                identification, builds
            )

        cause = exc_info.value.__cause__
        assert isinstance(cause, ArchiveError)
        assert cause.__cause__ is error
        assert recorder.calls == [("make", "build")]

    async def test_files_older_than_1980(self, identification: BuildIdentification):
        dist = identification.directory / "dist"
        dist.mkdir()
        bootstrap = dist / "bootstrap"
        bootstrap.write_bytes(b"\x7fELF")
        os.utime(bootstrap, (0, 0))
        recorder = Recorder()
        builds = BuildTaskSet.model_validate({"lambda-bundles": [{}]})

        await make_builder(recorder, archive=ZipArchiver()).build_all(
            identification, builds
        )

        archive = identification.directory / "abc123.zip"
        with zipfile.ZipFile(archive) as zf:
            assert zf.namelist() == ["bootstrap"]
            assert zf.getinfo("bootstrap").date_time == (1980, 1, 1, 0, 0, 0)
        assert recorder.calls[-1][:3] == ("aws", "s3", "cp")

    async def test_upload_failure(self, identification: BuildIdentification):
        recorder = Recorder(fail=argv_contains("s3"))
        builds = BuildTaskSet.model_validate({"lambda-bundles": [{}]})

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder).build_all(identification, builds)

        cause = exc_info.value.__cause__
        assert isinstance(cause, UploadError)
        assert str(cause) == "failed upload to S3"

    async def test_unknown_runtime_runs_nothing(
        self, identification: BuildIdentification
    ):
        recorder = Recorder()
        credentials = FakeCredentials()
        builds = BuildTaskSet.model_validate(
            {"lambda-bundles": [{"runtime": "python3.12", "cmd": "make"}]}
        )

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder, credentials=credentials).build_all(
                identification, builds
            )

        cause = exc_info.value.__cause__
        assert isinstance(cause, ConfigurationError)
        assert str(cause) == "unknown runtime python3.12"
        assert recorder.calls == []
        assert credentials.loads == 0


class TestBuildAll:
    async def test_bundles_then_images(self, identification: BuildIdentification):
        recorder = Recorder()
        credentials = FakeCredentials()
        builds = BuildTaskSet.model_validate(
            {"docker-images": [{}], "lambda-bundles": [{}, {"runtime": "nodejs14.x"}]}
        )

        await make_builder(recorder, credentials=credentials).build_all(
            identification, builds
        )

        assert [call[0] for call in recorder.calls] == [
            "make",
            "aws",
            "npm",
            "aws",
            "aws",
            "docker",
            "docker",
        ]
        assert recorder.calls[-3:] == image_commands(identification.directory)
        assert credentials.loads == 3

    async def test_credentials_reloaded_per_task(
        self, identification: BuildIdentification
    ):
        recorder = Recorder()
        builds = BuildTaskSet.model_validate({"lambda-bundles": [{}, {}]})

        await make_builder(recorder).build_all(identification, builds)

        secrets = [
            p.env["AWS_SECRET_ACCESS_KEY"]
            for p in recorder.processes
            if p.argv[0] == "make"
        ]
        assert secrets == ["secret-1", "secret-2"]

    async def test_first_failure_stops_remaining_tasks(
        self, identification: BuildIdentification
    ):
        recorder = Recorder(fail=argv_contains("npm"))
        builds = BuildTaskSet.model_validate(
            {"docker-images": [{}], "lambda-bundles": [{}, {"runtime": "nodejs14.x"}]}
        )

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder).build_all(identification, builds)

        assert exc_info.value.kind == "function bundle"
        assert exc_info.value.index == 1
        assert str(exc_info.value) == "build failed for function bundle 1"
        assert not any(call[0] == "docker" for call in recorder.calls)

    async def test_image_failure_reports_image_index(
        self, identification: BuildIdentification
    ):
        recorder = Recorder(
            fail=lambda p: p.argv[:2] == ["docker", "build"]
            and str(p.argv[-1]).endswith("second")
        )
        builds = BuildTaskSet.model_validate(
            {"docker-images": [{}, {"context": "second"}]}
        )

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(recorder).build_all(identification, builds)

        assert exc_info.value.kind == "container image"
        assert exc_info.value.index == 1

    async def test_credential_failure(self, identification: BuildIdentification):
        recorder = Recorder()
        builds = BuildTaskSet.model_validate({"docker-images": [{}]})

        with pytest.raises(TaskFailedError) as exc_info:
            await make_builder(
                recorder, credentials=FakeCredentials(fail=True)
            ).build_all(identification, builds)

        cause = exc_info.value.__cause__
        assert isinstance(cause, CredentialError)
        assert cause.source == "identity"
        assert recorder.calls == []

    async def test_empty(self, identification: BuildIdentification):
        recorder = Recorder()
        await make_builder(recorder).build_all(identification, BuildTaskSet())
        assert recorder.calls == []

    async def test_signal_shared_by_every_command(
        self, identification: BuildIdentification
    ):
        recorder = Recorder()
        signal = CancelSignal()
        builds = BuildTaskSet.model_validate(
            {"docker-images": [{}], "lambda-bundles": [{}]}
        )

        await make_builder(recorder, cancel=signal).build_all(identification, builds)

        assert recorder.signals
        assert all(s is signal for s in recorder.signals)
