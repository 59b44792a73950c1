"""
Recommendation Generator
Short study guidance derived from a scored attempt
"""
from typing import Dict, List, Optional

from quizcore.models.attempt import DetailedResult
from quizcore.models.quiz import Quiz


def _most_missed_difficulty(incorrect: List[DetailedResult]) -> Optional[str]:
    """Highest miss count wins; ties go to the tier seen first"""
    counts: Dict[str, int] = {}
    for result in incorrect:
        counts[result.difficulty] = counts.get(result.difficulty, 0) + 1

    best = None
    for difficulty, count in counts.items():
        if best is None or count > counts[best]:
            best = difficulty
    return best


def generate_recommendations(
    detailed_results: List[DetailedResult],
    quiz: Quiz,
    percentage: int
) -> List[str]:
    """
    Build recommendations for a scored attempt

    Args:
        detailed_results: Per-question breakdown in quiz order
        quiz: Quiz the attempt belongs to
        percentage: Question-count percentage of the attempt

    Returns:
        Ordered list of recommendation strings
    """
    recommendations = []

    if percentage < 60:
        recommendations.append(f"Consider reviewing the basics of {quiz.subject} - {quiz.topic}")
        recommendations.append("Practice more questions on this topic")
        recommendations.append("Focus on understanding the fundamental concepts")
    elif percentage < 80:
        recommendations.append("Good job! Focus on understanding the concepts you missed")
    elif percentage < 95:
        recommendations.append("Excellent performance! You have a strong grasp of the topic")
        recommendations.append("Review minor areas of improvement")
    else:
        recommendations.append("Outstanding! You have mastered this topic")
        recommendations.append("Consider exploring more advanced topics")

    incorrect = [r for r in detailed_results if not r.isCorrect]
    if incorrect:
        recommendations.append("Review the explanations for incorrect answers")
        difficulty = _most_missed_difficulty(incorrect)
        if difficulty:
            recommendations.append(f"Focus more on {difficulty} level questions")

    return recommendations
