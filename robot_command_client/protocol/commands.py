from enum import Enum, IntEnum


TCP_PORT = 20500  # Default port the simulation server listens on
HANDSHAKE_REQUEST = "CMD_START"
HANDSHAKE_READY = "READY"


class Command(Enum):
    """Command names, sent as the first Line of every frame."""

    # Station
    GET_ITEM = "G_Item"
    GET_ITEM_BY_TYPE = "G_Item2"
    LIST_ITEMS = "G_List_Items"
    LIST_ITEMS_BY_TYPE = "G_List_Items_Type"
    LIST_ITEMS_PTR = "G_List_Items_ptr"
    LIST_ITEMS_BY_TYPE_PTR = "G_List_Items_Type_ptr"
    PICK_ITEM = "PickItem"
    RAISE = "RAISE"
    HIDE = "HIDE"
    QUIT = "QUIT"
    SET_WINDOW_STATE = "S_WindowState"
    SET_FLAGS = "S_RoboDK_Rights"
    SHOW_MESSAGE = "ShowMessage"
    SHOW_MESSAGE_STATUS = "ShowMessageStatus"
    ADD_FILE = "Add"
    SAVE = "Save"
    ADD_SHAPE = "AddShape2"
    ADD_CURVE = "AddWire"
    PROJECT_POINTS = "ProjectPoints"
    ADD_TARGET = "Add_TARGET"
    ADD_FRAME = "Add_FRAME"
    ADD_PROGRAM = "Add_PROG"
    RUN_CODE = "RunCode"
    RUN_MESSAGE = "RunMessage"
    RENDER = "Render"
    IS_INSIDE = "IsInside"
    COLLISION_SET_STATE = "Collision_SetState"
    COLLISIONS = "Collisions"
    COLLIDED = "Collided"
    COLLISION_LINE = "CollisionLine"
    SET_SIMULATION_SPEED = "SimulateSpeed"
    GET_SIMULATION_SPEED = "GetSimulateSpeed"
    SET_RUN_MODE = "S_RunMode"
    GET_RUN_MODE = "G_RunMode"
    GET_PARAMS = "G_Params"
    GET_PARAM = "G_Param"
    SET_PARAM = "S_Param"
    GET_JOINTS_LIST = "G_ThetasList"
    SET_JOINTS_LIST = "S_ThetasList"
    PROGRAM_START = "ProgramStart"
    SET_VIEW_POSE = "S_ViewPose"
    GET_VIEW_POSE = "G_ViewPose"
    CAM2D_ADD = "Cam2D_Add"
    CAM2D_SNAPSHOT = "Cam2D_Snapshot"
    CAM2D_CLOSE = "Cam2D_Close"
    CAM2D_CLOSE_ALL = "Cam2D_CloseAll"
    CAM2D_SET_PARAMS = "Cam2D_SetParams"
    LICENSE = "G_License"
    SELECTION = "G_Selection"
    COLLISION_SET_PAIR = "Collision_SetPair"
    CALIBRATE_TOOL = "CalibTCP2"
    CALIBRATE_REFERENCE = "CalibFrame"
    SET_ROBOT_PARAMS = "S_AbsAccParam"

    # Generic item
    ITEM_TYPE = "G_Item_Type"
    GET_ITEM_FLAGS = "G_Item_Rights"
    SET_ITEM_FLAGS = "S_Item_Rights"
    REMOVE = "Remove"
    GET_PARENT = "G_Parent"
    SET_PARENT = "S_Parent"
    GET_CHILDREN = "G_Childs"
    GET_VISIBLE = "G_Visible"
    SET_VISIBLE = "S_Visible"
    GET_NAME = "G_Name"
    SET_NAME = "S_Name"
    GET_POSE = "G_Hlocal"
    SET_POSE = "S_Hlocal"
    GET_POSE_ABS = "G_Hlocal_Abs"
    SET_POSE_ABS = "S_Hlocal_Abs"
    GET_GEOMETRY_POSE = "G_Hgeom"
    SET_GEOMETRY_POSE = "S_Hgeom"
    GET_HTOOL = "G_Htool"
    SET_HTOOL = "S_Htool"
    GET_POSE_TOOL = "G_Tool"
    SET_POSE_TOOL = "S_Tool"
    SET_POSE_TOOL_ITEM = "S_Tool_ptr"
    GET_POSE_FRAME = "G_Frame"
    SET_POSE_FRAME = "S_Frame"
    SET_POSE_FRAME_ITEM = "S_Frame_ptr"
    RECOLOR = "Recolor"
    SCALE = "Scale"

    # Robots and targets
    GET_JOINTS = "G_Thetas"
    SET_JOINTS = "S_Thetas"
    GET_JOINTS_HOME = "G_Home"
    GET_JOINT_LIMITS = "G_RobLimits"
    SOLVE_FK = "G_FK"
    SOLVE_IK = "G_IK"
    SOLVE_IK_ALL = "G_IK_cmpl"
    SET_SPEED = "S_Speed4"
    SET_ROUNDING = "S_ZoneData"
    IS_BUSY = "IsBusy"
    STOP = "Stop"
    TARGET_AS_JOINT = "S_Target_As_JT"
    TARGET_AS_CARTESIAN = "S_Target_As_RT"
    TARGET_IS_JOINT = "Target_Is_JT"
    SET_ROBOT = "S_Robot"
    ADD_TOOL = "AddToolEmpty"
    COLLISION_MOVE_J = "CollisionMove"
    COLLISION_MOVE_L = "CollisionMoveL"
    GET_JOINTS_CONFIG = "G_Thetas_Config"
    SET_ACCURACY_ACTIVE = "S_AbsAccOn"
    SHOW_SEQUENCE = "Show_Seq"

    # Motion
    MOVE_X = "MoveX"
    MOVE_C = "MoveC"
    WAIT_MOVE = "WaitMove"

    # Programs
    MAKE_PROGRAM = "MakeProg"
    RUN_PROGRAM = "RunProg"
    PROGRAM_INSTRUCTION_COUNT = "Prog_Nins"
    ADD_MOVE_INSTRUCTION = "Add_INSMOVE"
    UPDATE_PROGRAM = "Update2"
    GET_INSTRUCTION = "Prog_GIns"
    SET_INSTRUCTION = "Prog_SIns"
    INSTRUCTION_LIST = "G_ProgInsList"
    INSTRUCTION_LIST_JOINTS = "G_ProgJointList"
    RUN_CODE_CUSTOM = "RunCode2"
    PAUSE = "RunPause"
    SET_DO = "setDO"
    WAIT_DI = "waitDI"
    CUSTOM_INSTRUCTION = "InsCustom2"


## printf 'CMD_START\n1 0\n' | ncat 127.0.0.1 20500

for command in Command:
    if "\n" in command.value or not command.value:
        raise ValueError(f"Command {command.name} must be a non-empty single line.")
    if not isinstance(command.value, str):
        raise TypeError(f"Command {command.name} must be of type str.")


class ItemType(IntEnum):
    """Item type tags returned alongside every item handle."""

    ANY = -1
    STATION = 1
    ROBOT = 2
    FRAME = 3
    TOOL = 4
    OBJECT = 5
    TARGET = 6
    PROGRAM = 8
    INSTRUCTION = 9
    PROGRAM_PYTHON = 10
    MACHINING = 11
    BALLBARVALIDATION = 12
    CALIBPROJECT = 13
    VALID_ISO9283 = 14


class MoveType(IntEnum):
    """Motion kinds carried by MoveX/MoveC and program move instructions."""

    JOINT = 1
    LINEAR = 2
    CIRCULAR = 3


class RunMode(IntEnum):
    SIMULATE = 1
    QUICKVALIDATE = 2
    MAKE_ROBOTPROG = 3
    RUN_ROBOT = 4


class WindowState(IntEnum):
    HIDDEN = -1
    SHOW = 0
    MINIMIZED = 1
    NORMAL = 2
    MAXIMIZED = 3
    FULLSCREEN = 4
    CINEMA = 5
    FULLSCREEN_CINEMA = 6


COLLISION_OFF = 0
COLLISION_ON = 1

FLAG_ITEM_ALL = 0xFFFF
FLAG_ROBODK_ALL = 0xFFFF

PROJECTION_ALONG_NORMAL_RECALC = 4

# Program instruction types (Prog_GIns / Prog_SIns)
INS_TYPE_MOVE = 0

# What RunCode2 inserts in a program
INSTRUCTION_CALL_PROGRAM = 0
INSTRUCTION_INSERT_CODE = 1
INSTRUCTION_START_THREAD = 2
INSTRUCTION_COMMENT = 3
INSTRUCTION_SHOW_MESSAGE = 4

# Calibration input formats and algorithms
JOINT_FORMAT = -1
EULER_RX_RY_RZ = 0
CALIBRATE_TCP_BY_POINT = 0
CALIBRATE_TCP_BY_PLANE = 1
CALIBRATE_FRAME_3P_P1_ON_X = 0
CALIBRATE_FRAME_3P_P1_ORIGIN = 1
CALIBRATE_FRAME_6P = 2
CALIBRATE_TURNTABLE = 3
