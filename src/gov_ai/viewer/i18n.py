"""
Viewer strings (English and Russian).
"""

DEFAULT_LANG = "en"

I18N: dict[str, dict[str, str]] = {
    "en": {
        "page_title": "DAO Governance Reports",
        "reports_count": "Total reports",
        "no_reports": "No reports available",
        "back_to_list": "Back to list",
        "file": "File",
        "not_found": "Page not found",
        "back_to_home": "Back to home",
        "source_info": "Source Information",
        "url": "URL",
        "fetched_at": "Fetched at",
        "source_type": "Source type",
        "extracted_data": "Extracted Data",
        "voting_options": "Voting Options",
        "current_results": "Current Results",
        "no_results": "No vote results available",
        "metadata": "Metadata",
        "analysis": "Analysis",
        "summary": "Summary",
        "key_changes": "Key Changes",
        "risks": "Risks",
        "benefits": "Benefits",
        "unknowns": "Unknown Factors",
        "evidence_quotes": "Evidence Quotes",
        "recommendation": "Recommendation",
        "suggested_option": "Suggested option",
        "confidence": "Confidence level",
        "reasoning": "Reasoning",
        "conflicts": "Conflicts with user principles",
        "limitations": "Limitations and Warnings",
        "vote_results": "Vote Results",
        "vote_stats": "Vote Statistics",
        "option": "Option",
        "votes": "Votes",
        "percent": "Percent",
        "type": "Type",
        "voters": "Voters",
        "modified": "Modified",
        "size": "Size",
        "report_title": "Report",
        "verification": "Verification",
        "verified": "Verified",
        "yes": "Yes",
        "no": "No",
        "validators": "Validators",
        "model": "Model",
        "merkle_root": "Merkle root",
        "request_id": "Request ID",
        "auction": "Auction",
        "status": "Status",
        "bids_placed": "Bids placed",
        "bids_revealed": "Bids revealed",
        "auction_address": "Auction address",
        "bidder": "Bidder",
        "refusal_detected": "Model refusal detected",
        "unverified_quotes": "Quotes not found in the proposal text",
    },
    "ru": {
        "page_title": "Отчёты DAO Governance",
        "reports_count": "Всего отчётов",
        "no_reports": "Нет доступных отчётов",
        "back_to_list": "Назад к списку",
        "file": "Файл",
        "not_found": "Страница не найдена",
        "back_to_home": "Вернуться на главную",
        "source_info": "Информация об источнике",
        "url": "URL",
        "fetched_at": "Получено",
        "source_type": "Тип источника",
        "extracted_data": "Извлечённые данные",
        "voting_options": "Варианты голосования",
        "current_results": "Текущие результаты",
        "no_results": "Нет данных о результатах голосования",
        "metadata": "Метаданные",
        "analysis": "Анализ",
        "summary": "Резюме",
        "key_changes": "Ключевые изменения",
        "risks": "Риски",
        "benefits": "Преимущества",
        "unknowns": "Неизвестные факторы",
        "evidence_quotes": "Цитаты из предложения",
        "recommendation": "Рекомендация",
        "suggested_option": "Рекомендуемый вариант",
        "confidence": "Уровень уверенности",
        "reasoning": "Обоснование",
        "conflicts": "Конфликты с принципами пользователя",
        "limitations": "Ограничения и предупреждения",
        "vote_results": "Результаты голосования",
        "vote_stats": "Статистика голосования",
        "option": "Вариант",
        "votes": "Голосов",
        "percent": "Процент",
        "type": "Тип",
        "voters": "Голосующих",
        "modified": "Изменён",
        "size": "Размер",
        "report_title": "Отчёт",
        "verification": "Верификация",
        "verified": "Верифицировано",
        "yes": "Да",
        "no": "Нет",
        "validators": "Валидаторы",
        "model": "Модель",
        "merkle_root": "Корень Меркла",
        "request_id": "ID запроса",
        "auction": "Аукцион",
        "status": "Статус",
        "bids_placed": "Ставок размещено",
        "bids_revealed": "Ставок раскрыто",
        "auction_address": "Адрес аукциона",
        "bidder": "Участник",
        "refusal_detected": "Обнаружен отказ модели",
        "unverified_quotes": "Цитаты, не найденные в тексте предложения",
    },
}


def resolve_lang(value: str | None) -> str:
    """``ru`` when asked for, English otherwise."""
    return "ru" if value == "ru" else DEFAULT_LANG


def get_strings(lang: str) -> dict[str, str]:
    return I18N[resolve_lang(lang)]
