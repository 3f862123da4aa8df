"""Tests for the per-entity lock registry."""

import threading
import time

import pytest

from petstay.core.entity_lock import KeyedLockRegistry, booking_lock_key, wallet_lock_key
from petstay.core.exceptions import EntityLockTimeoutException


def test_key_format():
    assert booking_lock_key("b1") == "booking:b1:mutex"
    assert wallet_lock_key("u1") == "wallet:u1:mutex"


def test_lock_is_reentrant():
    registry = KeyedLockRegistry(timeout_s=0.05)
    with registry.hold("booking:b1:mutex"):
        with registry.hold("booking:b1:mutex"):
            assert registry.active_keys() == 1
    assert registry.active_keys() == 0


def test_times_out_while_another_thread_holds_the_key():
    registry = KeyedLockRegistry(timeout_s=0.05)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with registry.hold("wallet:u1:mutex"):
            held.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert held.wait(2)
        with pytest.raises(EntityLockTimeoutException) as exc_info:
            with registry.hold("wallet:u1:mutex"):
                pass
        assert exc_info.value.code == "ENTITY_LOCKED"
        assert exc_info.value.status_code == 409
        assert exc_info.value.details["key"] == "wallet:u1:mutex"
    finally:
        release.set()
        thread.join()
    assert registry.active_keys() == 0


def test_unrelated_keys_do_not_contend():
    registry = KeyedLockRegistry(timeout_s=0.05)
    held = threading.Event()
    release = threading.Event()

    def holder():
        with registry.hold("wallet:u1:mutex"):
            held.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert held.wait(2)
        with registry.hold("wallet:u2:mutex"):
            assert registry.active_keys() == 2
    finally:
        release.set()
        thread.join()


def test_serializes_critical_sections():
    registry = KeyedLockRegistry(timeout_s=5)
    counter = {"value": 0}

    def bump():
        for _ in range(50):
            with registry.hold("booking:b1:mutex"):
                current = counter["value"]
                time.sleep(0)
                counter["value"] = current + 1

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert counter["value"] == 400
    assert registry.active_keys() == 0


def test_exception_inside_block_releases_lock():
    registry = KeyedLockRegistry(timeout_s=0.05)
    with pytest.raises(RuntimeError):
        with registry.hold("booking:b1:mutex"):
            raise RuntimeError("boom")
    assert registry.active_keys() == 0
