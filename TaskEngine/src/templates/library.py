"""Built-in task templates

Ready-made surveying templates instructors can start from. Scripts are
plain function bodies like any instructor-authored script and go through
the same validation when the template is built.
"""

import textwrap
from typing import Any, Dict, List

from ..models.enums import TemplateType
from ..models.grading import GradingSettings
from ..models.template import TaskTemplate, TemplateTestCase


DISTANCE_GENERATOR = """
x1 = round(generate_random(-500, 500), 2)
y1 = round(generate_random(-500, 500), 2)
x2 = round(generate_random(-500, 500), 2)
y2 = round(generate_random(-500, 500), 2)
return {'x1': x1, 'y1': y1, 'x2': x2, 'y2': y2}
"""

DISTANCE_SOLUTION = """
distance = calculate_distance(input_data['x1'], input_data['y1'], input_data['x2'], input_data['y2'])
return {'distance': round(distance, 3)}
"""

COORDINATE_TRANSFORMATION_GENERATOR = """
return {
    'x1': round(rng.uniform(-500, 500), 2),
    'y1': round(rng.uniform(-500, 500), 2),
    'angle': round(rng.uniform(0, 2 * PI), 3),
    'scale': round(0.8 + rng.random() * 0.4, 3),
    'dx': round(rng.uniform(-50, 50), 2),
    'dy': round(rng.uniform(-50, 50), 2),
}
"""

COORDINATE_TRANSFORMATION_SOLUTION = """
x1 = input_data['x1']
y1 = input_data['y1']
scale = input_data['scale']
c = cos(input_data['angle'])
s = sin(input_data['angle'])

x2 = x1 * scale * c - y1 * scale * s + input_data['dx']
y2 = x1 * scale * s + y1 * scale * c + input_data['dy']
return {'x2': round(x2, 2), 'y2': round(y2, 2)}
"""

FORWARD_INTERSECTION_GENERATOR = """
# ray 1 rises, ray 2 falls: never parallel
return {
    'x1': round(rng.uniform(-500, 0), 2),
    'y1': round(rng.uniform(-500, 500), 2),
    'x2': round(rng.uniform(0, 500), 2),
    'y2': round(rng.uniform(-500, 500), 2),
    'angle1': round(rng.uniform(0.1, 1.4), 3),
    'angle2': round(rng.uniform(1.7, 3.0), 3),
}
"""

FORWARD_INTERSECTION_SOLUTION = """
x1 = input_data['x1']
y1 = input_data['y1']
x2 = input_data['x2']
y2 = input_data['y2']
tan1 = tan(input_data['angle1'])
tan2 = tan(input_data['angle2'])

if abs(tan1 - tan2) < 1e-12:
    raise ValueError('rays are parallel')

x = (y2 - y1 + x1 * tan1 - x2 * tan2) / (tan1 - tan2)
y = y1 + tan1 * (x - x1)
if not isfinite(x) or not isfinite(y):
    raise ValueError('intersection is at infinity')
return {'x': round(x, 2), 'y': round(y, 2)}
"""


BUILTIN_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "distance-calculation": {
        "name": "Distance between two points",
        "template_type": TemplateType.DISTANCE_CALCULATION,
        "description": "Compute the horizontal distance between two points from their coordinates",
        "difficulty": "easy",
        "level": 2,
        "generator_script": DISTANCE_GENERATOR,
        "solution_script": DISTANCE_SOLUTION,
        "grading": GradingSettings(tolerance=0.01),
        "test_cases": [
            TemplateTestCase(
                input={"x1": 0, "y1": 0, "x2": 3, "y2": 4},
                expected_output={"distance": 5.0},
                description="3-4-5 triangle",
            ),
            TemplateTestCase(
                input={"x1": 10, "y1": 10, "x2": 10, "y2": 10},
                expected_output={"distance": 0.0},
                description="identical points",
            ),
        ],
        "tags": ["distance", "geometry", "basics"],
    },
    "coordinate-transformation": {
        "name": "Coordinate transformation - basics",
        "template_type": TemplateType.COORDINATE_TRANSFORMATION,
        "description": "Transform the given coordinates using rotation, scale and translation",
        "difficulty": "medium",
        "level": 5,
        "generator_script": COORDINATE_TRANSFORMATION_GENERATOR,
        "solution_script": COORDINATE_TRANSFORMATION_SOLUTION,
        "grading": GradingSettings(tolerance=0.01),
        "test_cases": [
            TemplateTestCase(
                input={"x1": 100, "y1": 0, "angle": 0, "scale": 1, "dx": 5, "dy": -5},
                expected_output={"x2": 105.0, "y2": -5.0},
                description="pure translation",
            ),
        ],
        "tags": ["coordinate-transformation", "geometry", "basics"],
    },
    "forward-intersection": {
        "name": "Forward intersection - practice",
        "template_type": TemplateType.FORWARD_INTERSECTION,
        "description": "Calculate the intersection point of two rays from known stations",
        "difficulty": "hard",
        "level": 7,
        "generator_script": FORWARD_INTERSECTION_GENERATOR,
        "solution_script": FORWARD_INTERSECTION_SOLUTION,
        "grading": GradingSettings(tolerance=0.01),
        "test_cases": [
            TemplateTestCase(
                # 45 degrees from the origin, 135 degrees from (10, 0): meet at (5, 5)
                input={"x1": 0, "y1": 0, "x2": 10, "y2": 0, "angle1": 0.7853981633974483, "angle2": 2.356194490192345},
                expected_output={"x": 5.0, "y": 5.0},
                description="symmetric rays",
            ),
        ],
        "tags": ["forward-intersection", "surveying", "advanced"],
    },
}


def list_builtin_templates() -> List[str]:
    return list(BUILTIN_TEMPLATES)


def get_builtin_template(name: str, **overrides) -> TaskTemplate:
    """Build a fresh TaskTemplate from the library

    Args:
        name: key of BUILTIN_TEMPLATES (e.g. "forward-intersection")
        **overrides: TaskTemplate fields to replace (e.g. is_public=True)

    Raises:
        KeyError: unknown template name
    """
    if name not in BUILTIN_TEMPLATES:
        raise KeyError(f"Unknown built-in template '{name}'. Available: {list_builtin_templates()}")

    fields = dict(BUILTIN_TEMPLATES[name])
    fields["generator_script"] = textwrap.dedent(fields["generator_script"]).strip("\n")
    fields["solution_script"] = textwrap.dedent(fields["solution_script"]).strip("\n")
    fields["grading"] = fields["grading"].model_copy()
    fields["test_cases"] = [c.model_copy(deep=True) for c in fields["test_cases"]]
    fields["tags"] = list(fields["tags"])
    fields.update(overrides)
    return TaskTemplate(**fields)
