class Phase:
    IMPREGNATION = "IMPREGNATION"
    BLACK_LIQUOR_FILL = "BLACK_LIQUOR_FILL"
    WHITE_LIQUOR_FILL = "WHITE_LIQUOR_FILL"
    COOKING = "COOKING"
    DISCHARGE = "DISCHARGE"

    ORDER = (IMPREGNATION, BLACK_LIQUOR_FILL, WHITE_LIQUOR_FILL, COOKING, DISCHARGE)

    LABELS = {
        IMPREGNATION: "Impregnation",
        BLACK_LIQUOR_FILL: "Black liquor fill",
        WHITE_LIQUOR_FILL: "White liquor fill",
        COOKING: "Cooking",
        DISCHARGE: "Discharge",
    }


class SequenceState:
    NOT_STARTED = "NOT_STARTED"
    IMPREGNATION = Phase.IMPREGNATION
    BLACK_LIQUOR_FILL = Phase.BLACK_LIQUOR_FILL
    WHITE_LIQUOR_FILL = Phase.WHITE_LIQUOR_FILL
    COOKING = Phase.COOKING
    DISCHARGE = Phase.DISCHARGE
    COMPLETED = "COMPLETED"   # all phases done, actuators neutral
    ABORTED = "ABORTED"       # failure or operator abort, actuators neutral


class RunState:
    INITIALIZED = "INITIALIZED"   # ready for a new run
    RUNNING = "RUNNING"
    HALTED = "HALTED"             # last run failed; needs reset
