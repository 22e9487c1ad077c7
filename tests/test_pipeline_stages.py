"""Tests for pipeline and stage management."""

from uuid import uuid4

import pytest
import pytest_asyncio

from snapline.exceptions.domain import (
    InstanceNotFoundError,
    InvalidArgumentError,
    InvalidNameError,
    InvalidStageError,
    StageNotFoundError,
)
from snapline.models import (
    Application,
    Pipeline,
    PipelineCreate,
    PipelineUpdate,
    StageCreate,
    StageUpdate,
)
from snapline.models.base import SnapshotAction
from snapline.repositories import (
    DeviceRepository,
    InstanceRepository,
    PipelineRepository,
    PipelineStageRepository,
    TeamRepository,
)
from snapline.services.pipeline import PipelineStageService


@pytest.fixture
def stage_service(test_session) -> PipelineStageService:
    return PipelineStageService(
        PipelineRepository(test_session),
        PipelineStageRepository(test_session),
        InstanceRepository(test_session),
        DeviceRepository(test_session),
        TeamRepository(test_session),
    )


@pytest_asyncio.fixture
async def pipeline(stage_service, application) -> Pipeline:
    return await stage_service.create_pipeline(
        PipelineCreate(name="Main", application_id=application.id)
    )


async def _chain(stage_service, pipeline, make_instance, *names: str):
    stages = []
    for name in names:
        instance = await make_instance(name)
        stages.append(
            await stage_service.add_pipeline_stage(
                pipeline, StageCreate(name=name, instance_id=instance.id)
            )
        )
    return stages


# ===================================================================
# Pipelines
# ===================================================================


class TestCreatePipeline:
    @pytest.mark.asyncio
    async def test_create(self, pipeline, application):
        assert pipeline.id is not None
        assert pipeline.application_id == application.id

    @pytest.mark.asyncio
    async def test_unknown_application(self, stage_service):
        with pytest.raises(InvalidArgumentError):
            await stage_service.create_pipeline(PipelineCreate(name="x", application_id=999))

    @pytest.mark.asyncio
    async def test_delete_pipeline(self, stage_service, pipeline, make_instance, test_session):
        await _chain(stage_service, pipeline, make_instance, "dev", "prod")
        pipeline_id = pipeline.id

        await stage_service.delete_pipeline(pipeline)

        assert await PipelineRepository(test_session).get_optional(pipeline_id) is None
        assert await PipelineStageRepository(test_session).list_for_pipeline(pipeline_id) == []


class TestUpdatePipeline:
    @pytest.mark.asyncio
    async def test_rename(self, stage_service, pipeline, test_session):
        renamed = await stage_service.update_pipeline(pipeline, PipelineUpdate(name="  Release  "))

        assert renamed.name == "Release"
        stored = await PipelineRepository(test_session).get(pipeline.id)
        assert stored.name == "Release"

    @pytest.mark.asyncio
    async def test_missing_name(self, stage_service, pipeline):
        with pytest.raises(InvalidNameError) as exc_info:
            await stage_service.update_pipeline(pipeline, PipelineUpdate())

        assert exc_info.value.code == "invalid_name"
        assert "Name is required" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   "])
    async def test_blank_name(self, stage_service, pipeline, name):
        with pytest.raises(InvalidNameError) as exc_info:
            await stage_service.update_pipeline(pipeline, PipelineUpdate(name=name))

        assert "not be blank" in str(exc_info.value)
        assert pipeline.name == "Main"


# ===================================================================
# Adding stages
# ===================================================================


class TestAddStage:
    @pytest.mark.asyncio
    async def test_both_targets_rejected(self, stage_service, pipeline, make_instance, make_device):
        instance = await make_instance("dev")
        device = await make_device("pi")

        with pytest.raises(InvalidArgumentError) as exc_info:
            await stage_service.add_pipeline_stage(
                pipeline, StageCreate(name="s", instance_id=instance.id, device_id=device.id)
            )
        assert str(exc_info.value) == "Cannot add a pipeline stage with both instance and a device"

    @pytest.mark.asyncio
    async def test_no_target_rejected(self, stage_service, pipeline):
        with pytest.raises(InvalidArgumentError) as exc_info:
            await stage_service.add_pipeline_stage(pipeline, StageCreate(name="s"))
        assert "instance_id or device_id is required" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_single_instance(self, stage_service, pipeline, make_instance):
        instance = await make_instance("dev")

        stage = await stage_service.add_pipeline_stage(
            pipeline,
            StageCreate(
                name="dev", instance_id=instance.id, action=SnapshotAction.USE_LATEST_SNAPSHOT
            ),
        )
        read = await stage_service.stage_read(stage)

        assert read.instance_ids == [instance.id]
        assert read.device_ids == []
        assert read.action == "use_latest_snapshot"
        assert read.next_stage_id is None

    @pytest.mark.asyncio
    async def test_single_device(self, stage_service, pipeline, make_device):
        device = await make_device("pi")

        stage = await stage_service.add_pipeline_stage(
            pipeline, StageCreate(name="edge", device_id=device.id)
        )
        read = await stage_service.stage_read(stage)

        assert read.device_ids == [device.id]
        assert read.instance_ids == []

    @pytest.mark.asyncio
    async def test_unknown_instance(self, stage_service, pipeline):
        with pytest.raises(InstanceNotFoundError):
            await stage_service.add_pipeline_stage(
                pipeline, StageCreate(name="s", instance_id=uuid4())
            )

    @pytest.mark.asyncio
    async def test_instance_from_other_application(
        self, stage_service, pipeline, make_instance, team, test_session
    ):
        other = Application(name="Other", team_id=team.id)
        test_session.add(other)
        await test_session.commit()
        instance = await make_instance("elsewhere", application_id=other.id)

        with pytest.raises(InvalidStageError):
            await stage_service.add_pipeline_stage(
                pipeline, StageCreate(name="s", instance_id=instance.id)
            )

    @pytest.mark.asyncio
    async def test_appends_in_order(self, stage_service, pipeline, make_instance):
        dev, test, prod = await _chain(
            stage_service, pipeline, make_instance, "dev", "test", "prod"
        )

        assert dev.next_stage_id == test.id
        assert test.next_stage_id == prod.id
        assert prod.next_stage_id is None
        assert [s.id for s in await stage_service.list_stages(pipeline)] == [
            dev.id,
            test.id,
            prod.id,
        ]

    @pytest.mark.asyncio
    async def test_insert_after_source(self, stage_service, pipeline, make_instance):
        dev, prod = await _chain(stage_service, pipeline, make_instance, "dev", "prod")
        qa = await make_instance("qa")

        inserted = await stage_service.add_pipeline_stage(
            pipeline, StageCreate(name="qa", instance_id=qa.id, source=dev.id)
        )

        assert dev.next_stage_id == inserted.id
        assert inserted.next_stage_id == prod.id
        names = [s.name for s in await stage_service.list_stages(pipeline)]
        assert names == ["dev", "qa", "prod"]

    @pytest.mark.asyncio
    async def test_unknown_source(self, stage_service, pipeline, make_instance):
        instance = await make_instance("dev")

        with pytest.raises(StageNotFoundError):
            await stage_service.add_pipeline_stage(
                pipeline, StageCreate(name="s", instance_id=instance.id, source=999)
            )

    @pytest.mark.asyncio
    async def test_source_from_other_pipeline(
        self, stage_service, pipeline, application, make_instance
    ):
        other = await stage_service.create_pipeline(
            PipelineCreate(name="Other", application_id=application.id)
        )
        (foreign,) = await _chain(stage_service, other, make_instance, "foreign")
        instance = await make_instance("dev")

        with pytest.raises(InvalidStageError):
            await stage_service.add_pipeline_stage(
                pipeline, StageCreate(name="s", instance_id=instance.id, source=foreign.id)
            )

    @pytest.mark.asyncio
    async def test_instance_in_use_rejected(self, stage_service, pipeline, make_instance):
        (dev,) = await _chain(stage_service, pipeline, make_instance, "dev")
        (instance_id,) = (await stage_service.stage_read(dev)).instance_ids

        with pytest.raises(InvalidStageError) as exc_info:
            await stage_service.add_pipeline_stage(
                pipeline, StageCreate(name="again", instance_id=instance_id)
            )
        assert "instanceId" in str(exc_info.value)
        assert len(await stage_service.list_stages(pipeline)) == 1

    @pytest.mark.asyncio
    async def test_device_in_use_by_other_pipeline_rejected(
        self, stage_service, pipeline, application, make_device
    ):
        device = await make_device("pi")
        other = await stage_service.create_pipeline(
            PipelineCreate(name="Other", application_id=application.id)
        )
        await stage_service.add_pipeline_stage(
            other, StageCreate(name="edge", device_id=device.id)
        )

        with pytest.raises(InvalidStageError) as exc_info:
            await stage_service.add_pipeline_stage(
                pipeline, StageCreate(name="edge", device_id=device.id)
            )
        assert "deviceId" in str(exc_info.value)


# ===================================================================
# Updating and deleting stages
# ===================================================================


class TestUpdateStage:
    @pytest.mark.asyncio
    async def test_rename_and_action(self, stage_service, pipeline, make_instance):
        (stage,) = await _chain(stage_service, pipeline, make_instance, "dev")

        updated = await stage_service.update_pipeline_stage(
            stage, StageUpdate(name="renamed", action=SnapshotAction.PROMPT)
        )

        assert updated.name == "renamed"
        assert updated.action == "prompt"
        assert updated.deploy_to_devices is False

    @pytest.mark.asyncio
    async def test_rebind_to_device(self, stage_service, pipeline, make_instance, make_device):
        (stage,) = await _chain(stage_service, pipeline, make_instance, "dev")
        device = await make_device("pi")

        updated = await stage_service.update_pipeline_stage(stage, StageUpdate(device_id=device.id))
        read = await stage_service.stage_read(updated)

        assert read.device_ids == [device.id]
        assert read.instance_ids == []

    @pytest.mark.asyncio
    async def test_rebind_to_both_rejected(
        self, stage_service, pipeline, make_instance, make_device
    ):
        (stage,) = await _chain(stage_service, pipeline, make_instance, "dev")
        instance = await make_instance("other")
        device = await make_device("pi")

        with pytest.raises(InvalidArgumentError):
            await stage_service.update_pipeline_stage(
                stage, StageUpdate(instance_id=instance.id, device_id=device.id)
            )

    @pytest.mark.asyncio
    async def test_rebind_to_instance_of_other_stage_rejected(
        self, stage_service, pipeline, make_instance
    ):
        dev, prod = await _chain(stage_service, pipeline, make_instance, "dev", "prod")
        (prod_instance,) = (await stage_service.stage_read(prod)).instance_ids

        with pytest.raises(InvalidStageError):
            await stage_service.update_pipeline_stage(dev, StageUpdate(instance_id=prod_instance))

    @pytest.mark.asyncio
    async def test_rebind_to_own_instance_allowed(self, stage_service, pipeline, make_instance):
        (stage,) = await _chain(stage_service, pipeline, make_instance, "dev")
        (instance_id,) = (await stage_service.stage_read(stage)).instance_ids

        updated = await stage_service.update_pipeline_stage(
            stage, StageUpdate(instance_id=instance_id, deploy_to_devices=True)
        )

        assert (await stage_service.stage_read(updated)).instance_ids == [instance_id]
        assert updated.deploy_to_devices is True


class TestDeleteStage:
    @pytest.mark.asyncio
    async def test_delete_middle_bridges(self, stage_service, pipeline, make_instance):
        dev, test, prod = await _chain(
            stage_service, pipeline, make_instance, "dev", "test", "prod"
        )

        await stage_service.delete_pipeline_stage(test)

        assert dev.next_stage_id == prod.id
        assert [s.id for s in await stage_service.list_stages(pipeline)] == [dev.id, prod.id]

    @pytest.mark.asyncio
    async def test_delete_last(self, stage_service, pipeline, make_instance):
        dev, prod = await _chain(stage_service, pipeline, make_instance, "dev", "prod")

        await stage_service.delete_pipeline_stage(prod)

        assert dev.next_stage_id is None
        assert [s.id for s in await stage_service.list_stages(pipeline)] == [dev.id]

    @pytest.mark.asyncio
    async def test_delete_head(self, stage_service, pipeline, make_instance):
        dev, prod = await _chain(stage_service, pipeline, make_instance, "dev", "prod")

        await stage_service.delete_pipeline_stage(dev)

        assert [s.id for s in await stage_service.list_stages(pipeline)] == [prod.id]

    @pytest.mark.asyncio
    async def test_delete_keeps_bound_instance(
        self, stage_service, pipeline, make_instance, test_session
    ):
        (stage,) = await _chain(stage_service, pipeline, make_instance, "dev")
        instance_ids = await PipelineStageRepository(test_session).get_instance_ids(stage.id)

        await stage_service.delete_pipeline_stage(stage)

        assert await InstanceRepository(test_session).get_optional(instance_ids[0]) is not None
        assert await PipelineStageRepository(test_session).get_instance_ids(stage.id) == []
