"""Task-specific prompt construction for the image generation API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from modules.pipelines.task_types import TaskType

PERSPECTIVE_ROLE = """ROLE: You are a world-class architectural visualization engine producing images indistinguishable from real DSLR photographs. Your output must look like a photograph taken by a professional architectural photographer, not a 3D render.

INPUT: Image 1 is the 3D model geometry (white model, wireframe, or base render) that defines the EXACT building shape, camera angle, and composition. Images 2+ are style and atmosphere references.

ABSOLUTE GEOMETRY LOCK:
1. The output MUST overlay perfectly over Image 1 in Photoshop at 100% opacity with zero pixel shift.
2. DO NOT move the camera, change focal length, crop, or reframe in any way.
3. Every wall, window, door, column, roof line, and architectural element stays at its EXACT pixel position.
4. You are NOT designing a building. You are applying photorealistic materials, lighting, and atmosphere onto the existing 3D geometry.

PHOTOREALISTIC RENDERING (CORONA/V-RAY QUALITY):
Materials:
- Apply physically-based materials with realistic imperfections: concrete with subtle surface variations, formwork marks, and natural aggregate texture. Glass with proper fresnel reflections, subtle green edge tint, and environment reflections. Wood with natural grain variation, knots, and appropriate finish (oil, lacquer, raw). Metal with correct specular response, anodization, or weathering patina.
- Every material must have micro-texture detail visible at close inspection. No flat or procedural-looking surfaces.

Lighting & Atmosphere:
- Physically accurate global illumination with realistic light bounce between surfaces.
- Ambient occlusion in every recess, joint, and corner.
- Soft shadow transitions with penumbra, never hard CG-looking shadows.
- If reference images are provided, match their lighting direction, color temperature, sky condition, and atmospheric mood precisely.
- Add subtle atmospheric depth haze for distant elements.

Environment & Context:
- Add realistic vegetation with identifiable species (olive trees, ornamental grasses, ground cover). Never generic blobs of green.
- Ground plane must show realistic materials: paved terraces, gravel paths, natural grass with mowing patterns and color variation.
- Include subtle environmental details: slight leaf debris, weathering on surfaces, realistic sky with cloud formations.
- If people are contextually appropriate, add them for scale with natural poses and contemporary clothing.

Red-marked zones in Image 1 = areas to modify freely (retouching, adding elements). All other zones = strict geometry lock.

OUTPUT QUALITY: The image must be indistinguishable from a photograph shot with a Canon EOS 5D at f/8, with natural depth of field, subtle lens characteristics, and print-ready resolution."""

FACADE_ROLE = """ROLE: You are a specialist in photorealistic architectural elevation rendering. You produce elevation views that look like high-end orthographic photographs, NOT perspective images.

INPUT: Image 1 is a 2D elevation or facade drawing that defines the EXACT geometry. Images 2+ are material and style references.

CRITICAL ORTHOGRAPHIC PROJECTION LOCK:
1. The output MUST remain in strict ORTHOGRAPHIC projection: absolutely NO perspective distortion, NO vanishing points, NO foreshortening.
2. Maintain the EXACT flat, frontal viewing angle of Image 1.
3. Every opening (window, door, void), every proportion, every architectural line must stay at its EXACT pixel position.
4. Output must be a perfect 1:1 overlay with Image 1 in Photoshop.
5. If the input is an orthographic elevation, the output MUST be an orthographic elevation.

PHOTOREALISTIC MATERIAL APPLICATION:
- Apply physically-based materials to each surface zone: facade cladding with realistic tiling, joints, and fixing details visible. Window frames with correct profile depth and shadow. Roof materials with proper texture and overlap pattern.
- Materials must show realistic imperfections: slight color variation across panels, weathering patterns, joint lines with shadow depth, natural surface irregularities.
- Window glass must show subtle reflections and slight interior visibility.
- Add realistic shadow depth to all openings and recesses while keeping the orthographic view.
- Ground line should show material transition (facade meeting terrain/pavement).

LIGHTING:
- Soft, even directional lighting (slightly from upper-left or upper-right) to reveal material texture and create depth through shadows in recesses.
- Ambient occlusion in every joint, recess, and material transition.
- Light must be consistent and even across the entire elevation.

OUTPUT QUALITY: Professional elevation render suitable for planning submissions and design presentations, reading as a photorealistic orthographic elevation."""

MASTERPLAN_ROLE = """ROLE: You are a landscape architecture visualization specialist producing photorealistic aerial masterplan illustrations. Your output must look like a high-resolution satellite photograph or professional drone shot of a fully realized landscape project.

INPUT: Image 1 is the site plan defining the EXACT geometry: building footprints, roads, pathways, plot boundaries, and landscape zones. Images 2+ are style references for vegetation quality and atmosphere.

GEOMETRY LOCK:
1. Maintain the EXACT scale, position, and shape of every element from Image 1: building footprints, roads, pathways, parking areas, plot boundaries.
2. DO NOT reposition, resize, or remove any built element.
3. Maintain the exact top-down or aerial viewing angle from Image 1.
4. North arrow, scale bars, and annotations in the original must be preserved.

PHOTOREALISTIC LANDSCAPE RENDERING:
Vegetation:
- Replace schematic vegetation symbols with photorealistic tree canopies seen from above, using varied species.
- Each tree must cast a realistic shadow consistent with a single sun direction (upper-left recommended).
- Lawn areas must show realistic grass with natural color variation, mowing patterns, and slight texture.
- Hedge lines, shrub masses, and ground cover must be distinguishable with appropriate scale and density.

Ground Surfaces:
- Paved areas: realistic asphalt with road markings, concrete pavers with joint patterns, gravel with natural color variation.
- Water features: realistic water with subtle reflections, edge treatment, and depth variation.
- Parking: individual parking bays, markings, and occasional parked vehicles for scale.

Atmosphere:
- Soft, warm directional sunlight creating consistent shadows across the entire site.
- Subtle atmospheric depth; the overall palette should feel like a sunny afternoon.

OUTPUT QUALITY: A professional landscape architecture presentation board with the precision of a technical plan and the beauty of an aerial photograph."""

MATERIAL_ROLE = """ROLE: You are a PBR texture artist and material specialist for architectural 3D workflows. Your task is to take a material reference image and produce a clean, seamless, production-ready texture for 3D rendering software (V-Ray, Corona, Blender, Unreal Engine).

INPUT: Image 1 is a material reference (photo from internet, catalog, or site photo). Images 2+ are additional style references if provided.

TEXTURE PRODUCTION RULES:
1. Produce a clean, high-resolution DIFFUSE/ALBEDO map of the material.
2. The texture must be as seamless and tileable as possible; edges should blend naturally for repetition.
3. Remove any perspective distortion from the source photo: the output must be a perfectly flat, frontal texture.
4. Remove baked-in shadows and highlights. The texture should show the material's natural color under neutral, even lighting.
5. Preserve all micro-detail: grain patterns, surface irregularities, color variations, veining, knots, aggregate texture.

MATERIAL QUALITY STANDARDS:
- The texture must look like a professional PBR albedo map: no harsh shadows, no perspective, no reflections baked in.
- Natural material variation must be preserved.
- Scale must be consistent and appropriate for architectural use.
- Color accuracy is critical: keep the true color of the material under neutral daylight.

OUTPUT: A single clean, flat, high-resolution texture suitable for direct import into 3D software as a diffuse/albedo map."""

TECHNICAL_DETAIL_ROLE = """ROLE: You are a senior technical architect and construction detailing expert. From any architectural photo, screenshot, or sketch, you produce precise technical construction detail drawings showing exactly how the element is built.

INPUT: Image 1 is a photograph, screenshot, or sketch of an architectural element (facade detail, window junction, roof edge, balcony, railing, cladding system, etc.).

PRODUCE A TECHNICAL CONSTRUCTION DETAIL showing:
1. LAYER-BY-LAYER CONSTRUCTION: every material layer from exterior to interior, each identified with its material and approximate thickness.
2. JUNCTIONS & CONNECTIONS: fixing brackets, sealant joints, drip edges, flashings, thermal breaks, vapor barriers.
3. STANDARD DRAWING CONVENTIONS: proper hatch patterns per material, dimension lines in millimeters, material labels with leader lines, thick lines for cut elements and thin lines beyond the cut plane.
4. REALISTIC PROPORTIONS: all layer thicknesses and element sizes architecturally realistic and to scale.
5. ANNOTATION: label every material and component, include key dimensions, note critical construction points.

DRAWING STYLE:
- Clean, professional technical drawing on white background.
- Black line work with minimal color (red for waterproofing membrane, blue for vapor barrier, yellow for insulation).
- Precise enough to be redrawn in ArchiCAD or AutoCAD as a construction section.

OUTPUT: A professional architectural construction detail drawing (section/cut) explaining the construction system of the element shown in the input image."""

TASK_ROLES: Dict[TaskType, str] = {
    TaskType.PERSPECTIVE: PERSPECTIVE_ROLE,
    TaskType.FACADE: FACADE_ROLE,
    TaskType.MASTERPLAN: MASTERPLAN_ROLE,
    TaskType.MATERIAL: MATERIAL_ROLE,
    TaskType.TECHNICAL_DETAIL: TECHNICAL_DETAIL_ROLE,
}

DEFAULT_INSTRUCTION = (
    "Apply photorealistic materials, lighting, and atmosphere to transform this "
    "into a photograph-quality architectural image."
)
DEFAULT_INSTRUCTIONS: Dict[TaskType, str] = {
    TaskType.TECHNICAL_DETAIL: "Generate a detailed technical construction section of the architectural element shown.",
    TaskType.MATERIAL: "Clean and optimize this material texture for use as a PBR diffuse map in 3D software.",
}

FINAL_REQUIREMENTS = """FINAL OUTPUT REQUIREMENTS:
- Maximum quality, maximum detail, maximum resolution.
- The output must be professional enough for architectural competition boards, client presentations, and publication in architecture magazines."""

NIGHT_MODE_DIRECTIVE = (
    "Only transform the weather and lighting of the scene: very cold dawn light, "
    "leaning blue-grey, with soft and warm interior lighting."
)

UPSCALE_PROMPT = """ARCHITECTURAL IMAGE UPSCALING: PHOTOREALISTIC ENHANCEMENT.

INPUT: The attached image is an architectural render or visualization.
TASK: Upscale this image to maximum photorealistic quality while preserving every element exactly as-is.

PIXEL-PERFECT GEOMETRY LOCK, NO EXCEPTIONS:
1. DO NOT move, rotate, crop, or reframe the image in any way.
2. DO NOT add, remove, or change any architectural element.
3. DO NOT change the camera angle, focal length, or composition.
4. The output must overlay perfectly over the input at 100% opacity in Photoshop.

PHOTOREALISTIC QUALITY ENHANCEMENTS:
- Enhance all material textures to physically-based quality: micro-detail on concrete, natural wood grain, glass with proper fresnel reflections, metal with correct specular highlights.
- Improve lighting: stronger global illumination and light bounce, deeper ambient occlusion in recesses and joints, natural penumbra on shadow transitions.
- Add photographic qualities: subtle depth of field, gentle lens vignette, warm architectural photography color grading.
- Sharpen joint lines, shadow edges, material transitions, vegetation detail and texture micro-patterns.
- Enhance sky and environment realism without changing composition or content.

OUTPUT: Maximum resolution image that looks like a professional DSLR photograph shot by an architectural photographer. Print-ready quality."""

STYLE_IMAGE_PROMPT = """A professional architectural reference photograph showing: {description}.
The image must look like a real photograph taken by a professional architectural photographer, not a render or illustration.
Focus on realistic material textures with natural imperfections, physically accurate lighting with global illumination and ambient occlusion, and natural atmosphere.
Quality benchmark: Archdaily or Dezeen publication photography. Shot with a DSLR camera, natural depth of field."""

ANALYSIS_PROMPT = """You are a senior architecture consultant specialised in 3D render post-production.
Analyse this image with the following intent in mind: "{context}".

Give a concise critique and 3 concrete suggestions to improve realism or architectural presentation.
Structure your answer as follows:
- **Critique**: [overall analysis in 1-2 sentences]
- **Geometry & Perspective**: [specific suggestion]
- **Lighting & Shadows**: [specific suggestion]
- **Materials & Textures**: [specific suggestion]

Answer precisely and actionably."""

DEFAULT_ANALYSIS_CONTEXT = "photorealistic render"


@dataclass(slots=True)
class PromptBundle:
    """Assembled prompt text for a generation call."""

    task_type: TaskType
    instruction: str
    text: str
    uses_default_instruction: bool = False


def default_instruction(task_type: TaskType) -> str:
    """Return the fallback instruction used when the user typed nothing."""
    return DEFAULT_INSTRUCTIONS.get(task_type, DEFAULT_INSTRUCTION)


def apply_night_mode(instruction: str) -> str:
    """Append the night lighting directive to a user instruction."""
    base = instruction.strip()
    return f"{base} {NIGHT_MODE_DIRECTIVE}" if base else NIGHT_MODE_DIRECTIVE


def build_prompt(
    task_type: TaskType,
    instruction: Optional[str] = None,
    project_context: Optional[str] = None,
) -> PromptBundle:
    """Compose the full generation prompt for a task.

    The task template (role, geometry lock and rendering directives) comes
    first, followed by the user's instruction, falling back to the task
    default, an optional project-context reference and the shared output
    requirements. The result is deterministic for identical inputs.
    """
    user_instruction = (instruction or "").strip()
    uses_default = not user_instruction
    if uses_default:
        user_instruction = default_instruction(task_type)

    sections = [TASK_ROLES[task_type], "", f"USER INSTRUCTION: {user_instruction}"]
    context = (project_context or "").strip()
    if context:
        sections.append(
            "PROJECT CONTEXT: Use this project link for additional visual references "
            f"and context: {context}"
        )
    sections.extend(["", FINAL_REQUIREMENTS])

    return PromptBundle(
        task_type=task_type,
        instruction=user_instruction,
        text="\n".join(sections),
        uses_default_instruction=uses_default,
    )


def build_style_prompt(description: str) -> str:
    """Prompt for a single style/material reference photograph."""
    return STYLE_IMAGE_PROMPT.format(description=description.strip())


def build_analysis_prompt(context: Optional[str]) -> str:
    """Prompt for the critique returned by the analysis model."""
    return ANALYSIS_PROMPT.format(context=(context or "").strip() or DEFAULT_ANALYSIS_CONTEXT)
