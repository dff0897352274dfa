from __future__ import annotations

import subprocess
from contextlib import suppress

import anyio
from anyio.abc import ByteReceiveStream, ByteSendStream
from anyio.abc import Process as Child
from loguru import logger

from .exceptions import (
    PipeError,
    ProcessCancelledError,
    ProcessExitError,
    ProcessStartError,
)
from .model import CancelSignal, Process


async def _open(process: Process, *, stdin: int | None, stdout: int | None) -> Child:
    try:
        return await anyio.open_process(
            process.argv,
            cwd=process.cwd,
            env=process.environment(),
            stdin=stdin,
            stdout=stdout,
            stderr=None,
        )
    except OSError as e:
        raise ProcessStartError(process.command_line) from e


async def _terminate(*children: Child) -> None:
    with anyio.CancelScope(shield=True):
        for child in children:
            if child.returncode is None:
                with suppress(ProcessLookupError):
                    child.kill()
            await child.wait()


async def _copy(src: ByteReceiveStream, dst: ByteSendStream) -> None:
    async for chunk in src:
        await dst.send(chunk)
    await dst.aclose()


async def run(process: Process, cancel: CancelSignal | None = None) -> None:
    """
    Run a single external command to completion.

    Output is not captured: the child writes straight to this process's
    stdout and stderr.

    Raises:
        ProcessStartError: The command could not be started.
        ProcessExitError: The command exited with a non-zero status.
        ProcessCancelledError: `cancel` fired before the command exited.
    """
    signal = cancel or CancelSignal()
    command_line = process.command_line
    logger.info("--> {}", command_line)

    if signal.cancelled:
        raise ProcessCancelledError(command_line)

    child = await _open(process, stdin=subprocess.DEVNULL, stdout=None)
    async with child:
        with signal.scope() as scope:
            await child.wait()

        if scope.cancelled_caught:
            await _terminate(child)
            raise ProcessCancelledError(command_line)

    if child.returncode != 0:
        raise ProcessExitError(command_line, child.returncode)


async def pipe(
    source: Process, sink: Process, cancel: CancelSignal | None = None
) -> None:
    """
    Run `source | sink`, copying every byte of source's stdout to sink's stdin.

    Both sides keep their own working directory and environment. Cancellation
    kills both processes and is reported for the pipeline as a whole.

    Raises:
        ProcessStartError: Either side could not be started.
        ProcessExitError: Either side exited with a non-zero status.
        ProcessCancelledError: `cancel` fired before both sides exited.
        PipeError: The sink stopped reading before the source was drained.
    """
    signal = cancel or CancelSignal()
    command_line = f"{source.command_line} | {sink.command_line}"
    logger.info("--> {}", command_line)

    if signal.cancelled:
        raise ProcessCancelledError(command_line)

    producer = await _open(source, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE)
    async with producer:
        try:
            consumer = await _open(sink, stdin=subprocess.PIPE, stdout=None)
        except ProcessStartError:
            await _terminate(producer)
            raise

        async with consumer:
            assert producer.stdout and consumer.stdin
            with signal.scope() as scope:
                try:
                    await _copy(producer.stdout, consumer.stdin)
                except (anyio.BrokenResourceError, anyio.ClosedResourceError) as e:
                    await _terminate(producer, consumer)
                    raise PipeError(command_line) from e
                await producer.wait()
                await consumer.wait()

            if scope.cancelled_caught:
                await _terminate(producer, consumer)
                raise ProcessCancelledError(command_line)

    if producer.returncode != 0:
        raise ProcessExitError(source.command_line, producer.returncode)
    if consumer.returncode != 0:
        raise ProcessExitError(sink.command_line, consumer.returncode)
