# vim: tabstop=4 shiftwidth=4 softtabstop=4

# Copyright (c) 2012 VMware, Inc.
# Copyright (c) 2011 Citrix Systems, Inc.
# Copyright 2011 OpenStack Foundation
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

"""Port group management on the host virtual switches."""

import logging

from pyvsphere import error_util
from pyvsphere import utils
from pyvsphere import vim_util
from pyvsphere import vm_util

LOG = logging.getLogger(__name__)

MAX_VLAN_ID = 4095


def _get_network_system(session, host):
    return session.get_property('configManager.networkSystem',
                                of='HostSystem', where={'name': host})


def add_portgroup(session, host, vswitch, portgroup, vlan=0):
    """
    Adds a port group to the virtual switch.

    vlan 0 means no VLAN, 1-4094 tags the port group and 4095 puts it in
    trunk mode.
    """
    utils.check_required(host=host, vswitch=vswitch, portgroup=portgroup)
    vlan = int(vlan or 0)
    if not 0 <= vlan <= MAX_VLAN_ID:
        raise error_util.ValidationError("Invalid VLAN ID %s" % vlan)
    LOG.debug("Creating Port Group with name %s on the vSwitch %s at %s",
              portgroup, vswitch, host)
    network_system = _get_network_system(session, host)
    session.request('HostNetworkSystem', network_system, 'AddPortGroup',
                    vm_util.get_portgroup_spec(portgroup, vswitch, vlan))
    return True


def remove_portgroup(session, host, portgroup):
    """Removes the port group from the host."""
    utils.check_required(host=host, portgroup=portgroup)
    LOG.debug("Removing Port Group %s at %s", portgroup, host)
    network_system = _get_network_system(session, host)
    session.request('HostNetworkSystem', network_system, 'RemovePortGroup',
                    vim_util.new_element('pgName', portgroup))
    return True
