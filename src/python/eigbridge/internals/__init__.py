###########################################################################
#  This file is part of eigbridge, and is licensed under EITHER the MIT
#  license or the Apache 2.0 license, at your option.
#
#      http://www.apache.org/licenses/LICENSE-2.0
#      http://opensource.org/licenses/MIT
###########################################################################

import sys
import time

# (you can add calls to this if you want to do some "println profiling".
#  callers reading our stderr may timestamp the lines as they are received)
def info(*args):
    print(*args, file=sys.stderr); sys.stderr.flush(); time.sleep(0)
