"""Built-in automation plans.

Grouped the way they are shown to users: energy, training, nutrition and
mindset. ``trigger_condition`` documents the intent only; evaluation is done
by the predicates in :mod:`gymflow.core.evaluator`.
"""

from __future__ import annotations

from gymflow.models import (
    ActionPayload,
    ActionType,
    AutomationPlan,
    PlanCategory,
    SuggestionPriority,
    TriggerType,
)


def _plan(**kwargs) -> AutomationPlan:
    payload = kwargs.pop("payload")
    return AutomationPlan(action_payload=ActionPayload(**payload), **kwargs)


DEFAULT_PLANS: tuple[AutomationPlan, ...] = (
    # ------------------------------------------------------------------
    # Energy
    # ------------------------------------------------------------------
    _plan(
        id="energy_001",
        name="Morning Coffee",
        name_vi="Cà Phê Sáng",
        description="Gợi ý uống cà phê khi cơ thể đang lờ đờ vào buổi sáng",
        trigger_type=TriggerType.TIME_BASED,
        trigger_condition="hour >= 6 && hour <= 8 && heartRate < 60",
        action_type=ActionType.SUGGESTION,
        category=PlanCategory.ENERGY,
        payload={
            "title": "☕ Thời Điểm Hoàn Hảo",
            "message": "Một ly cafe đen không đường lúc này sẽ giúp bạn tỉnh táo + đốt mỡ nhanh hơn 15%.",
            "icon": "coffee",
        },
    ),
    _plan(
        id="energy_002",
        name="Bad Weather Alert",
        name_vi="Thời Tiết Xấu",
        description="Tự động gợi ý bài tập tại nhà khi trời mưa",
        trigger_type=TriggerType.WEATHER,
        trigger_condition="rainProbability > 80",
        action_type=ActionType.AUTO_SCHEDULE,
        category=PlanCategory.ENERGY,
        payload={
            "title": "🌧️ Trời Mưa Rồi",
            "message": "Chuyển sang HIIT tại nhà thay vì chạy bộ ngoài trời nhé!",
            "suggested_plan": "HIIT tại nhà",
        },
    ),
    _plan(
        id="energy_003",
        name="Oversleep Warning",
        name_vi="Báo Thức Sinh Học",
        description="Cảnh báo khi ngủ quá nhiều gây mệt mỏi ngược",
        trigger_type=TriggerType.HEALTH_METRIC,
        trigger_condition="sleepHours > 9",
        action_type=ActionType.WARNING,
        category=PlanCategory.ENERGY,
        payload={
            "title": "😴 Ngủ Quá Nhiều!",
            "message": "Ngủ >9h sẽ gây Sleep Inertia (mệt mỏi ngược). Dậy và uống 500ml nước ngay!",
            "severity": "medium",
        },
    ),
    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------
    _plan(
        id="training_001",
        name="Plateau Breaker",
        name_vi="Phá Vỡ Cao Nguyên",
        description="Đề xuất kỹ thuật mới khi không tăng được tạ",
        trigger_type=TriggerType.WORKOUT_EVENT,
        trigger_condition="consecutiveNoProgress >= 3",
        action_type=ActionType.SUGGESTION,
        category=PlanCategory.TRAINING,
        payload={
            "title": "📈 Phá Vỡ Giới Hạn",
            "message": 'Bạn đang bị "mắc kẹt". Thử Drop Set hoặc Negative Reps cho buổi tiếp theo!',
            "techniques": ["Drop Set", "Negative Reps", "Pause Reps"],
        },
    ),
    _plan(
        id="training_002",
        name="Overtraining Alert",
        name_vi="Cảnh Báo Tập Quá Sức",
        description="Cảnh báo khi tăng volume tập quá nhanh",
        trigger_type=TriggerType.WORKOUT_EVENT,
        trigger_condition="weeklyVolumeIncrease > 20",
        action_type=ActionType.WARNING,
        category=PlanCategory.TRAINING,
        payload={
            "title": "⚠️ Cảnh Báo Chấn Thương",
            "message": "Volume tập tăng quá 20% so với tuần trước. Giảm 10% hoặc nghỉ thêm 1 ngày.",
            "severity": "high",
        },
    ),
    _plan(
        id="training_003",
        name="Form Reminder",
        name_vi="Nhắc Nhở Form Tập",
        description="Nhắc giữ form đúng khi tập bài nặng",
        trigger_type=TriggerType.WORKOUT_EVENT,
        trigger_condition='exerciseName in ["Deadlift", "Squat", "Bench Press"]',
        action_type=ActionType.NOTIFICATION,
        category=PlanCategory.TRAINING,
        payload={
            "title": "🎯 Giữ Form!",
            "messages": {
                "Deadlift": "Giữ lưng THẲNG! Đừng cong lưng nếu không muốn thoát vị đĩa đệm.",
                "Squat": "Đầu gối song song với mũi chân. Đừng để gối vặn vào trong!",
                "Bench Press": "Vai rút lại, ngực ưỡn. Đừng nảy tạ lên ngực!",
            },
        },
    ),
    _plan(
        id="training_004",
        name="PR Celebration",
        name_vi="Khen Thưởng Kỷ Lục",
        description="Ăn mừng khi phá kỷ lục cá nhân",
        trigger_type=TriggerType.WORKOUT_EVENT,
        trigger_condition="newPersonalRecord === true",
        action_type=ActionType.REWARD,
        category=PlanCategory.TRAINING,
        payload={
            "title": "🏆 KỶ LỤC MỚI!",
            "message": "Bạn vừa phá vỡ giới hạn bản thân. Một ngày lịch sử!",
            "badge": "gym_monster",
            "confetti": True,
        },
    ),
    _plan(
        id="training_005",
        name="Rest Timer",
        name_vi="Đếm Ngược Nghỉ Hiệp",
        description="Nhắc khi đã nghỉ đủ giữa các hiệp",
        trigger_type=TriggerType.HEALTH_METRIC,
        trigger_condition='heartRateZone === "recovery" && restTime > 90',
        action_type=ActionType.NOTIFICATION,
        category=PlanCategory.TRAINING,
        payload={
            "title": "⏰ Hết Giờ Nghỉ!",
            "message": "Tim đã ổn định. Vào set tiếp theo ngay!",
            "vibrate": True,
        },
    ),
    # ------------------------------------------------------------------
    # Nutrition & recovery
    # ------------------------------------------------------------------
    _plan(
        id="nutrition_001",
        name="Anabolic Window",
        name_vi="Cửa Sổ Đồng Hóa",
        description="Nhắc nạp protein sau khi tập xong 15 phút",
        trigger_type=TriggerType.WORKOUT_EVENT,
        trigger_condition="workoutEndedMinutesAgo === 15",
        action_type=ActionType.NOTIFICATION,
        category=PlanCategory.NUTRITION,
        payload={
            "title": "🍌 Nạp Năng Lượng Ngay!",
            "message": "Cửa sổ đồng hóa đang mở. 1 muỗng Whey + 1 quả chuối là hoàn hảo!",
            "priority": SuggestionPriority.HIGH,
        },
    ),
    _plan(
        id="nutrition_002",
        name="Smart Hydration",
        name_vi="Nhắc Uống Nước Thông Minh",
        description="Tăng tần suất nhắc uống nước khi trời nóng",
        trigger_type=TriggerType.WEATHER,
        trigger_condition="temperature > 30 || humidity < 40",
        action_type=ActionType.NOTIFICATION,
        category=PlanCategory.NUTRITION,
        payload={
            "title": "💧 Uống Nước Ngay!",
            "message": "Thời tiết nóng/khô. Uống 250ml nước để duy trì hiệu suất.",
            "interval_minutes": 30,
        },
    ),
    _plan(
        id="nutrition_003",
        name="Pre-Workout Meal",
        name_vi="Bữa Ăn Trước Tập",
        description="Gợi ý ăn nhẹ 2 tiếng trước giờ tập",
        trigger_type=TriggerType.TIME_BASED,
        trigger_condition="hoursUntilScheduledWorkout === 2",
        action_type=ActionType.SUGGESTION,
        category=PlanCategory.NUTRITION,
        payload={
            "title": "🍽️ Chuẩn Bị Năng Lượng",
            "message": "Còn 2 tiếng nữa là tập. Ăn nhẹ: Yến mạch + Sữa chua. Tránh đồ dầu mỡ!",
            "foods": ["Yến mạch", "Sữa chua Hy Lạp", "Chuối", "Bánh mì nguyên cám"],
        },
    ),
    _plan(
        id="nutrition_004",
        name="Sleep Optimization",
        name_vi="Giấc Ngủ Vàng",
        description="Nhắc đi ngủ và giảm ánh sáng xanh",
        trigger_type=TriggerType.TIME_BASED,
        trigger_condition="hour >= 22",
        action_type=ActionType.MODE_SWITCH,
        category=PlanCategory.NUTRITION,
        payload={
            "title": "🌙 Đến Giờ Nghỉ Ngơi",
            "message": "Cất điện thoại đi. Blue light đang giết chết Testosterone của bạn!",
            "enable_dark_mode": True,
            "dim_screen": True,
        },
    ),
    # ------------------------------------------------------------------
    # Mindset & discipline
    # ------------------------------------------------------------------
    _plan(
        id="mindset_001",
        name="Discipline Check",
        name_vi="Kỷ Luật Thép",
        description="Khiêu khích khi có dấu hiệu bỏ tập",
        trigger_type=TriggerType.STREAK,
        trigger_condition="daysWithoutWorkout >= 3",
        action_type=ActionType.NOTIFICATION,
        category=PlanCategory.MINDSET,
        payload={
            "title": "🔥 Đừng Bỏ Cuộc!",
            "message": "Đối thủ của bạn đang tập luyện đấy. Còn bạn thì sao?",
            "tone": "provocative",
        },
    ),
    _plan(
        id="mindset_002",
        name="Rest Day Meditation",
        name_vi="Thiền Định Ngày Nghỉ",
        description="Gợi ý thiền khi là ngày nghỉ",
        trigger_type=TriggerType.TIME_BASED,
        trigger_condition="isRestDay === true && hour >= 7 && hour <= 9",
        action_type=ActionType.SUGGESTION,
        category=PlanCategory.MINDSET,
        payload={
            "title": "🧘 Ngày Hồi Phục",
            "message": "Hôm nay là ngày nghỉ. Thiền 10 phút để giảm Cortisol và tăng tốc hồi phục.",
            "duration": 10,
        },
    ),
    _plan(
        id="mindset_003",
        name="Weekly Summary",
        name_vi="Tổng Kết Tuần",
        description="Báo cáo thành tích cuối tuần",
        trigger_type=TriggerType.TIME_BASED,
        trigger_condition="dayOfWeek === 0 && hour === 20",  # Sunday 8PM
        action_type=ActionType.NOTIFICATION,
        category=PlanCategory.MINDSET,
        payload={
            "title": "📊 Tổng Kết Tuần",
            "generate_summary": True,
        },
    ),
    _plan(
        id="mindset_004",
        name="Milestone Celebration",
        name_vi="Chia Sẻ Vinh Quang",
        description="Tạo ảnh chia sẻ khi đạt cột mốc lớn",
        trigger_type=TriggerType.STREAK,
        trigger_condition="streak in [7, 30, 100, 365]",
        action_type=ActionType.REWARD,
        category=PlanCategory.MINDSET,
        payload={
            "title": "🎉 Cột Mốc Lịch Sử!",
            "generate_shareable_image": True,
            "milestone_messages": {
                "7": "1 tuần kiên trì! Khởi đầu tuyệt vời.",
                "30": "1 tháng chiến binh! Thói quen đang hình thành.",
                "100": "100 ngày huyền thoại! Bạn là 1% những người không bỏ cuộc.",
                "365": "1 NĂM! Bạn không còn là người bình thường nữa.",
            },
        },
    ),
)
