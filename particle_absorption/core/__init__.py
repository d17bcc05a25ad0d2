"""
颗粒吸收校正核心模块

该子包包含校正计算的核心功能模块：
- constants: 单位换算、默认参数和调试标志
- errors: 异常类型（配置错误、前置条件违反、退化结果）
- data_classes: 数据结构定义（BoundingBox, AttenuationContext, SpectrumGeometry, CorrectionResult）
- geometry: 刚体变换、放置后的几何体和射线-网格求交
- shapes: 基本几何体（平面、多平面体、球、圆柱、差集、网格）
- sample_shapes: 样品形状目录
- stl_utils: STL文件读写
- sampling: 随机抽样和独立随机流
- integrator: 通用蒙特卡罗积分器
- absorption: 吸收加权的X射线产生
- models: 材料、谱线、电子射程、质量衰减系数和深度分布曲线
- correction: 几何设置和校正驱动
- io_utils: 输出工具
"""

# 常数
from .constants import (
    DEBUG,
    DEFAULT_N_DRAWS,
    DEPTH_SAFETY_FACTOR,
    ESCAPE_PATH_STATS,
    reset_escape_path_stats,
    print_escape_path_stats,
)

# 异常
from .errors import (
    CorrectionError,
    ConfigurationError,
    PreconditionViolation,
    DegenerateResult,
    NumericalWarning,
)

# 数据类
from .data_classes import (
    BoundingBox,
    AttenuationContext,
    SpectrumGeometry,
    MeshGeometry,
    SampleDraw,
    CorrectionResult,
)

# 几何处理
from .geometry import (
    euler_rotation_matrix,
    RigidTransform,
    PlacedSolid,
    transform_bounding_box,
    prepare_mesh_geometry,
    segment_mesh_intersections,
    mesh_distance_statistics,
)

# 几何体
from .shapes import (
    Solid,
    Plane,
    MultiPlaneSolid,
    SphereSolid,
    CylinderSolid,
    DifferenceSolid,
    MeshSolid,
)

# 样品形状
from .sample_shapes import (
    SampleShape,
    Bulk,
    ThinFilm,
    RightRectangularPrism,
    TetragonalPrism,
    TriangularPrism,
    SquarePyramid,
    Cylinder,
    Fiber,
    Hemisphere,
    Sphere,
    MeshShape,
)

# STL工具
from .stl_utils import load_stl_mesh, save_stl_mesh

# 抽样
from .sampling import (
    resolve_generator,
    spawn_generators,
    sample_uniform_in_box,
    split_budget,
)

# 积分
from .integrator import MonteCarloIntegrator, integrate

# 吸收
from .absorption import (
    AbsorptionWeightedSampler,
    with_ratio_moments,
    ratio_standard_error,
)

# 物理模型
from .models import (
    Element,
    element,
    Material,
    XRayTransition,
    KanayaOkayamaRange,
    ConstantRange,
    ConstantMassAttenuation,
    TabulatedMassAttenuation,
    load_attenuation_table,
    UniformGeneration,
    ArmstrongPhiRhoZ,
    as_array_function,
)

# 校正
from .correction import (
    depth_limit,
    setup_particle_geometry,
    ParticleAbsorptionCorrection,
)

# IO工具
from .io_utils import (
    export_correction_results_to_csv,
    export_sample_draws_to_csv,
)

__all__ = [
    # 常数
    'DEBUG',
    'DEFAULT_N_DRAWS',
    'DEPTH_SAFETY_FACTOR',
    'ESCAPE_PATH_STATS',
    'reset_escape_path_stats',
    'print_escape_path_stats',
    # 异常
    'CorrectionError',
    'ConfigurationError',
    'PreconditionViolation',
    'DegenerateResult',
    'NumericalWarning',
    # 数据类
    'BoundingBox',
    'AttenuationContext',
    'SpectrumGeometry',
    'MeshGeometry',
    'SampleDraw',
    'CorrectionResult',
    # 几何
    'euler_rotation_matrix',
    'RigidTransform',
    'PlacedSolid',
    'transform_bounding_box',
    'prepare_mesh_geometry',
    'segment_mesh_intersections',
    'mesh_distance_statistics',
    # 几何体
    'Solid',
    'Plane',
    'MultiPlaneSolid',
    'SphereSolid',
    'CylinderSolid',
    'DifferenceSolid',
    'MeshSolid',
    # 样品形状
    'SampleShape',
    'Bulk',
    'ThinFilm',
    'RightRectangularPrism',
    'TetragonalPrism',
    'TriangularPrism',
    'SquarePyramid',
    'Cylinder',
    'Fiber',
    'Hemisphere',
    'Sphere',
    'MeshShape',
    # STL
    'load_stl_mesh',
    'save_stl_mesh',
    # 抽样
    'resolve_generator',
    'spawn_generators',
    'sample_uniform_in_box',
    'split_budget',
    # 积分
    'MonteCarloIntegrator',
    'integrate',
    # 吸收
    'AbsorptionWeightedSampler',
    'with_ratio_moments',
    'ratio_standard_error',
    # 物理模型
    'Element',
    'element',
    'Material',
    'XRayTransition',
    'KanayaOkayamaRange',
    'ConstantRange',
    'ConstantMassAttenuation',
    'TabulatedMassAttenuation',
    'load_attenuation_table',
    'UniformGeneration',
    'ArmstrongPhiRhoZ',
    'as_array_function',
    # 校正
    'depth_limit',
    'setup_particle_geometry',
    'ParticleAbsorptionCorrection',
    # IO
    'export_correction_results_to_csv',
    'export_sample_draws_to_csv',
]
