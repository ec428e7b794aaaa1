"""Unit tests for the flow registry."""

from __future__ import annotations

import pytest

from attache.core.options import Options
from attache.pipeline.errors import OptionsError
from attache.pipeline.flows import FLOW_REGISTRY, FlowResolver
from attache.pipeline.state import FileState
from attache.pipeline.steps.copy_version import CopyStep
from attache.pipeline.steps.retrieve_version import RetrieveStep


class TestFlowResolver:
    """Test suite for FlowResolver."""

    def test_store_flow_order(self) -> None:
        steps = FlowResolver().resolve("store")

        assert [step.name for step in steps] == [
            "transform",
            "transform",
            "postprocess",
            "storage_dir",
            "filename",
            "storage_opts",
            "storage",
        ]

    def test_delete_flow(self) -> None:
        steps = FlowResolver().resolve("delete")
        assert [step.name for step in steps] == ["storage_dir", "filename", "storage_opts", "storage"]

    def test_flow_arguments_reach_the_steps(self) -> None:
        to_state = FileState.init("beans.jpg", Options())

        copy_step = FlowResolver().resolve("copy", to_state=to_state)[-1]
        retrieve_step = FlowResolver().resolve("retrieve", destination="/tmp/out.jpg")[-1]

        assert isinstance(copy_step, CopyStep)
        assert copy_step.to_state is to_state
        assert isinstance(retrieve_step, RetrieveStep)
        assert retrieve_step.destination == "/tmp/out.jpg"

    def test_unknown_operation(self) -> None:
        with pytest.raises(OptionsError) as exc_info:
            FlowResolver().resolve("archive")
        assert exc_info.value.details["available"] == list(FLOW_REGISTRY)

    def test_list_available_flows(self) -> None:
        assert FlowResolver().list_available_flows() == list(FLOW_REGISTRY)
