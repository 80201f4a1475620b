from typing import Optional, List, Tuple
from sqlmodel import Session, select
from sqlalchemy.exc import SQLAlchemyError
from models.db_models import Project, ProjectVersion, ProjectStatus, utc_now
from services.error_types import ProjectNotFoundError, ProjectStoreError
from services.pipeline_contracts import PipelineResult
import logging

logger = logging.getLogger(__name__)

INITIAL_CHANGE_REASON = "Initial calculation"


class ProjectStore:
    """SQL-backed store for calculated projects and their versions"""

    def create_project_with_initial_version(
        self,
        session: Session,
        user_id: str,
        location: str,
        result: PipelineResult,
    ) -> Tuple[Project, ProjectVersion]:
        """
        Persist a finished calculation as a project plus version 1.

        The version insert is committed separately; if it fails the project
        row is removed again so no project exists without a version.

        Raises:
            ProjectStoreError: When either insert fails
        """
        project = Project(
            user_id=user_id,
            name=f"Manual J Calculation - {location}",
            location=location,
            status=ProjectStatus.COMPLETED,
            static_data=result.static_data,
            dynamic_assumptions=result.dynamic_assumptions,
            manual_j_results=result.manual_j_results,
            chart_data=result.chart_data,
            csv_data=result.csv_data,
        )

        try:
            session.add(project)
            session.commit()
            session.refresh(project)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Project creation failed for user {user_id}, location {location}: {e}")
            raise ProjectStoreError("Project creation failed", details={"reason": str(e)}) from e

        project_id = project.id
        version = ProjectVersion(
            project_id=project_id,
            version_number=1,
            static_data=result.static_data,
            dynamic_assumptions=result.dynamic_assumptions,
            manual_j_results=result.manual_j_results,
            change_reason=INITIAL_CHANGE_REASON,
            is_active=True,
        )

        try:
            session.add(version)
            session.commit()
            session.refresh(version)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Version creation failed for project {project_id} - attempting cleanup: {e}")
            self._delete_project(session, project)
            raise ProjectStoreError(
                "Version creation failed",
                details={"project_id": project_id, "reason": str(e), "version_affected": True},
            ) from e

        logger.info(f"Created project {project_id} (version 1) for user {user_id}")
        return project, version

    def get_project(self, session: Session, project_id: str, user_id: Optional[str] = None) -> Project:
        """
        Raises:
            ProjectNotFoundError: Unknown id, or owned by a different user
        """
        project = session.get(Project, project_id)
        if project is None or (user_id is not None and project.user_id != user_id):
            raise ProjectNotFoundError(f"Project {project_id} not found", details={"project_id": project_id})
        return project

    def get_project_context(self, session: Session, project_id: str) -> Tuple[str, str]:
        """Static data and current assumptions, as the chat assistant needs them"""
        project = self.get_project(session, project_id)
        return project.static_data, project.dynamic_assumptions

    def list_versions(self, session: Session, project_id: str) -> List[ProjectVersion]:
        statement = (
            select(ProjectVersion)
            .where(ProjectVersion.project_id == project_id)
            .order_by(ProjectVersion.version_number)
        )
        return list(session.exec(statement).all())

    def add_version(
        self,
        session: Session,
        project_id: str,
        result: PipelineResult,
        change_reason: str,
        user_id: Optional[str] = None,
    ) -> ProjectVersion:
        """
        Record a recalculation as the new active version and update the
        project row to match. Earlier versions are kept but deactivated.
        """
        project = self.get_project(session, project_id, user_id)
        versions = self.list_versions(session, project_id)
        next_number = (versions[-1].version_number + 1) if versions else 1

        for existing in versions:
            if existing.is_active:
                existing.is_active = False
                session.add(existing)

        version = ProjectVersion(
            project_id=project_id,
            version_number=next_number,
            static_data=result.static_data,
            dynamic_assumptions=result.dynamic_assumptions,
            manual_j_results=result.manual_j_results,
            change_reason=change_reason,
            is_active=True,
        )
        session.add(version)

        project.dynamic_assumptions = result.dynamic_assumptions
        project.manual_j_results = result.manual_j_results
        project.chart_data = result.chart_data
        project.csv_data = result.csv_data
        project.updated_at = utc_now()
        session.add(project)

        try:
            session.commit()
            session.refresh(version)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Version {next_number} creation failed for project {project_id}: {e}")
            raise ProjectStoreError(
                "Version creation failed",
                details={"project_id": project_id, "reason": str(e), "version_affected": True},
            ) from e

        logger.info(f"Project {project_id}: version {next_number} active ({change_reason})")
        return version

    def _delete_project(self, session: Session, project: Project) -> None:
        project_id = project.id
        try:
            session.delete(project)
            session.commit()
        except SQLAlchemyError as cleanup_error:
            session.rollback()
            logger.error(
                f"Project cleanup failed after version creation error for {project_id}: {cleanup_error}"
            )
