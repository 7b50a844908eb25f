"""
Points ledger.

The user's points column is a cache over the activity ledger: every balance
change is committed in the same transaction as the Activity row that explains
it. Everything that touches the balance MUST go through here.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from marketing_community.models.domain import Activity, User
from marketing_community.models.enums import ActivityType
from marketing_community.services.notifications import (
    NotificationService,
    NotificationTemplates,
    paginate,
)
from marketing_community.services.point_policies import PointPolicyTable, point_policies

logger = logging.getLogger(__name__)


class UserNotFoundError(LookupError):
    """Raised when a balance operation targets a user that does not exist."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"사용자를 찾을 수 없습니다: {user_id}")


class AuthorizationError(Exception):
    """Raised when the caller is not allowed to perform an administrative action."""

    def __init__(self, message: str = "관리자 권한이 필요합니다."):
        self.message = message
        super().__init__(self.message)


class PointsService:
    """Awards, deducts and reports community points."""

    def __init__(
        self,
        db: Session,
        notifications: Optional[NotificationService] = None,
        policies: Optional[PointPolicyTable] = None
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.policies = policies or point_policies

    def award_points(
        self,
        user_id: str,
        amount: int,
        action: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Add points to a user's balance.

        The sign of amount is ignored. The balance increment and its Activity
        row commit together; the "points earned" notification is sent after
        commit and its failure never undoes the award.
        """
        award_amount = abs(amount)

        try:
            updated = self.db.query(User).filter(User.id == user_id).update(
                {User.points: User.points + award_amount},
                synchronize_session=False
            )
            if not updated:
                raise UserNotFoundError(user_id)

            self.db.add(Activity(
                user_id=user_id,
                type=action,
                title=description,
                description=f"{award_amount}포인트를 획득했습니다.",
                points=award_amount,
                metadata_json=metadata
            ))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to award points: user={user_id} action={action} error={e}")
            raise

        self._notify_points_earned(user_id, award_amount, action, description)

        logger.info(f"Points awarded: user={user_id} amount={award_amount} action={action}")

    def deduct_points(
        self,
        user_id: str,
        amount: int,
        action: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Remove points from a user's balance.

        Returns False, changing nothing, when the balance is too low.
        Insufficient funds is an expected outcome, not an error.
        """
        deduct_amount = abs(amount)

        try:
            user = self.db.query(User).filter(User.id == user_id).first()
            if user is None:
                raise UserNotFoundError(user_id)

            current_points = user.points
            if current_points < deduct_amount:
                logger.warning(
                    f"Insufficient points: user={user_id} current={current_points} "
                    f"required={deduct_amount} action={action}"
                )
                return False

            # Guarded decrement so a concurrent deduction cannot take the balance below zero
            updated = self.db.query(User).filter(
                User.id == user_id,
                User.points >= deduct_amount
            ).update(
                {User.points: User.points - deduct_amount},
                synchronize_session=False
            )
            if not updated:
                self.db.rollback()
                logger.warning(f"Insufficient points after concurrent update: user={user_id} action={action}")
                return False

            self.db.add(Activity(
                user_id=user_id,
                type=action,
                title=description,
                description=f"{deduct_amount}포인트가 차감되었습니다.",
                points=-deduct_amount,
                metadata_json=metadata
            ))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to deduct points: user={user_id} action={action} error={e}")
            raise

        logger.info(
            f"Points deducted: user={user_id} amount={deduct_amount} action={action} "
            f"remaining={current_points - deduct_amount}"
        )
        return True

    def process_action(
        self,
        user_id: str,
        action_name: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Apply the point policy for a community action.

        Returns False only when the action costs points the user does not
        have; the caller should then refuse the action itself.
        """
        policy = self.policies.get_policy(action_name)
        if policy is None:
            # No monetization policy must never block the feature
            logger.warning(f"Unknown point policy action: action={action_name} user={user_id}")
            return True

        if policy.point_cost > 0:
            return self.deduct_points(
                user_id,
                policy.point_cost,
                action_name,
                policy.action_name,
                metadata
            )

        if policy.point_cost < 0:
            self.award_points(
                user_id,
                abs(policy.point_cost),
                action_name,
                policy.action_name,
                metadata
            )

        return True

    def admin_adjust_points(
        self,
        admin_id: str,
        target_user_id: str,
        amount: int,
        reason: str
    ) -> bool:
        """
        Award (amount > 0) or deduct (amount < 0) points on an admin's behalf.

        The admin flag is re-read from the store, never trusted from input.
        A deduction larger than the target's balance is not applied and
        returns False; callers must check the result.
        """
        admin = self.db.query(User).filter(User.id == admin_id).first()
        if admin is None or not admin.is_admin:
            logger.warning(f"Rejected admin point adjustment: caller={admin_id} target={target_user_id}")
            raise AuthorizationError()

        if amount == 0:
            raise ValueError("조정할 포인트는 0이 될 수 없습니다.")

        description = f"관리자 조정: {reason}"
        metadata = {"adminId": admin_id, "reason": reason}

        if amount > 0:
            self.award_points(target_user_id, amount, ActivityType.ADMIN_AWARD.value, description, metadata)
            applied = True
        else:
            applied = self.deduct_points(target_user_id, amount, ActivityType.ADMIN_DEDUCT.value, description, metadata)

        logger.info(
            f"Admin point adjustment: admin={admin_id} target={target_user_id} "
            f"amount={amount} applied={applied}"
        )
        return applied

    def get_user_points(self, user_id: str) -> int:
        user = self.db.query(User).filter(User.id == user_id).first()
        return user.points if user else 0

    def get_point_history(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        type: Optional[str] = None
    ) -> Dict[str, Any]:
        """Paginated ledger entries for a user, newest first."""
        query = self.db.query(Activity).filter(Activity.user_id == user_id)
        if type:
            query = query.filter(Activity.type == type)

        total_count = query.count()
        activities = query.order_by(
            Activity.created_at.desc(), Activity.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "activities": activities,
            "pagination": paginate(page, limit, total_count),
        }

    def get_leaderboard(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Active users with a positive balance, highest first. Rank is 1-based."""
        users = self.db.query(User).filter(
            User.is_active.is_(True),
            User.points > 0
        ).order_by(User.points.desc()).limit(limit).all()

        return [
            {
                "rank": index + 1,
                "id": user.id,
                "name": user.name,
                "nickname": user.nickname,
                "image": user.image,
                "company": user.company,
                "position": user.position,
                "points": user.points,
            }
            for index, user in enumerate(users)
        ]

    def _notify_points_earned(self, user_id: str, amount: int, action: str, reason: str) -> None:
        type_, title, message = NotificationTemplates.points_earned(amount, reason)
        try:
            self.notifications.create(
                user_id,
                type_,
                title,
                message,
                metadata={"points": amount, "action": action}
            )
        except Exception as e:
            logger.warning(f"Points earned notification failed: user={user_id} error={e}")
